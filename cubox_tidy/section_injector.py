"""
Section injector: writes a placeholder into a titled section and later
replaces it with final content.

The two phases are split so a caller can persist the placeholder, await the
external content, and then complete exactly the line it wrote:

    anchor = injector.begin_section(buffer, "# 总结", "...generating...")
    ...  # await the summary; no line inserts/deletes at or above ``anchor``
    injector.complete_section(buffer, anchor, summary, placeholder="...generating...")
"""

from typing import Optional

from loguru import logger

from cubox_tidy.errors import StaleAnchorError
from cubox_tidy.line_buffer import LineBuffer


ENTRY_PREFIX = "- "


class SectionInjector:
    """Locate or create a named section and manage its single entry line."""

    def __init__(self, entry_prefix: str = ENTRY_PREFIX):
        self.entry_prefix = entry_prefix

    def find_section(self, buffer: LineBuffer, title: str) -> Optional[int]:
        """Index of the first line whose trimmed text equals ``title``."""
        for i in range(buffer.line_count()):
            if buffer.get_line(i).strip() == title:
                return i
        return None

    def begin_section(self, buffer: LineBuffer, title: str, placeholder: str) -> int:
        """
        Write ``placeholder`` as the entry of section ``title``.

        Args:
            buffer: Note buffer, mutated in place
            title: Exact text of the section title line
            placeholder: Sentinel marking in-flight work

        Returns:
            Anchor line index; ``buffer.get_line(anchor) == placeholder``
        """
        title_line = self.find_section(buffer, title)

        if title_line is None:
            anchor = buffer.append_lines(title, placeholder)
            logger.debug(f"Created section {title!r}; placeholder at line {anchor}")
            return anchor

        anchor = title_line + 1
        if anchor < buffer.line_count():
            entry = buffer.get_line(anchor)
            if placeholder in entry or entry.startswith(self.entry_prefix):
                buffer.set_line(anchor, placeholder)
                logger.debug(f"Reused entry line {anchor} of section {title!r}")
                return anchor

        buffer.insert_line(anchor, placeholder)
        logger.debug(f"Inserted placeholder at line {anchor} under section {title!r}")
        return anchor

    def complete_section(
        self,
        buffer: LineBuffer,
        anchor_line: int,
        final_text: str,
        placeholder: Optional[str] = None,
    ) -> None:
        """
        Overwrite the anchor line with a list entry holding ``final_text``.

        No search is performed. When ``placeholder`` is given, the anchor line
        must still equal it, otherwise StaleAnchorError is raised and the buffer
        is left untouched.
        """
        current = buffer.get_line(anchor_line)
        if placeholder is not None and current != placeholder:
            logger.warning(f"Anchor line {anchor_line} changed while waiting: {current!r}")
            raise StaleAnchorError(anchor_line, current)

        # One entry line; a multi-line summary would shift every line below the anchor
        flattened = " ".join(part.strip() for part in final_text.splitlines() if part.strip())
        buffer.set_line(anchor_line, self.entry_prefix + flattened)
        logger.debug(f"Completed section entry at line {anchor_line}")


# Global injector instance
_injector: Optional[SectionInjector] = None


def get_section_injector() -> SectionInjector:
    """Get the global section injector instance."""
    global _injector
    if _injector is None:
        _injector = SectionInjector()
    return _injector
