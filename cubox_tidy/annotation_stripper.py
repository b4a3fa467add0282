"""
Annotation stripper: removes Cubox capture clutter from a note buffer.
"""

import re
from typing import Optional

from loguru import logger

from cubox_tidy.line_buffer import LineBuffer
from cubox_tidy.models import AnnotationKind


class AnnotationStripper:
    """Classify every line of a buffer and delete the clutter in one pass."""

    def __init__(self):
        """Initialize the stripper patterns."""
        # Any of these deletes the line; order does not matter
        self.line_patterns = [
            (AnnotationKind.CAPTURE_TOOL_LINK, re.compile(r'cubox://(\S*)')),
            (AnnotationKind.SUMMARY_ORIGIN_LINK, re.compile(r'https://cubox\.pro/my/highlight\?id=(\S*)')),
            (AnnotationKind.HEADING_LEVEL1, re.compile(r'^#\s+')),
        ]
        # Applied to the last surviving line only
        self.trailing_link_pattern = re.compile(r'https?://(\S*)')

    def classify(self, line: str) -> AnnotationKind:
        """Return the first annotation kind the line matches, or PLAIN."""
        for kind, pattern in self.line_patterns:
            if pattern.search(line):
                return kind
        return AnnotationKind.PLAIN

    def strip(self, buffer: LineBuffer) -> None:
        """
        Strip annotations from ``buffer`` in place.

        Lines are examined in a single forward pass; after a deletion the cursor
        stays put so the line that shifted into its place is examined next. The
        last remaining line is then dropped if it carries any http(s) link.
        """
        removed = 0
        i = 0
        n = buffer.line_count()
        while i < n:
            kind = self.classify(buffer.get_line(i))
            if kind is AnnotationKind.PLAIN:
                i += 1
                continue
            logger.debug(f"Removing line {i + removed} ({kind.value})")
            buffer.delete_line(i)
            removed += 1
            # Same as decrementing n, except deleting the only line leaves [""]
            n = buffer.line_count()

        if n == 0:
            logger.debug(f"Stripped {removed} lines; buffer empty")
            return

        last = n - 1
        if self.trailing_link_pattern.search(buffer.get_line(last)):
            logger.debug(f"Removing trailing source link on line {last}")
            buffer.delete_line(last)
            removed += 1

        logger.debug(f"Stripped {removed} lines")


# Global stripper instance
_stripper: Optional[AnnotationStripper] = None


def get_annotation_stripper() -> AnnotationStripper:
    """Get the global annotation stripper instance."""
    global _stripper
    if _stripper is None:
        _stripper = AnnotationStripper()
    return _stripper


def strip_text(text: str) -> str:
    """Strip annotations from a whole note's text."""
    buffer = LineBuffer.from_text(text)
    get_annotation_stripper().strip(buffer)
    return buffer.text
