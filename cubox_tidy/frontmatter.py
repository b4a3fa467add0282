"""
Front-matter date stamping for newly created notes.
"""

from __future__ import annotations

from datetime import date

import frontmatter
import yaml
from loguru import logger

FRONTMATTER_DELIMITER = "---"


def created_line(day: date) -> str:
    return f"created: {day.strftime('%Y-%m-%d')}"


def _has_created_key(text: str) -> bool:
    # An opening delimiter without a closing one is not front matter
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        logger.warning(f"Unreadable front matter, stamping anyway: {e}")
        return False
    return "created" in post.metadata


def stamp_created(text: str, day: date) -> str:
    """
    Add ``created: YYYY-MM-DD`` to a note's front matter.

    Without front matter a three-line block is prepended; otherwise the field
    goes directly after the opening delimiter. Notes whose front matter already
    carries a ``created`` field come back unchanged.
    """
    if not text.startswith(FRONTMATTER_DELIMITER):
        return f"{FRONTMATTER_DELIMITER}\n{created_line(day)}\n{FRONTMATTER_DELIMITER}\n" + text

    if _has_created_key(text):
        return text
    lines = text.split("\n")
    lines.insert(1, created_line(day))
    return "\n".join(lines)
