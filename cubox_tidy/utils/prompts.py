from __future__ import annotations

import math
from typing import Optional

import jinja2

from cubox_tidy.config import DEFAULT_PROMPT_TEMPLATE


def count_tokens(text: str) -> int:
    # ~4 chars/token
    return max(1, math.ceil(len(text or "") / 4))


def limit_text_by_tokens(text: str, max_tokens: int) -> str:
    """Trim text to approximately fit within max_tokens."""
    if max_tokens <= 0:
        return text
    tokens = count_tokens(text)
    if tokens <= max_tokens:
        return text
    ratio = max(0.1, float(max_tokens) / float(max(tokens, 1)))
    est_len = max(1, int(len(text) * ratio))
    return text[:est_len]


def render_summary_prompt(content: str, template: Optional[str] = None, max_tokens: int = 0) -> str:
    """Render the summary prompt for a note's full content."""
    tmpl = jinja2.Template(template or DEFAULT_PROMPT_TEMPLATE, keep_trailing_newline=True)
    return tmpl.render(content=limit_text_by_tokens(content, max_tokens))
