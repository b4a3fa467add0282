"""
Error types raised by cubox-tidy.
"""

from typing import Optional


class CuboxTidyError(Exception):
    """Base class for all cubox-tidy errors."""

    # Text shown to the user when the error surfaces as a notice
    notice: str = "cubox-tidy failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.notice)


class ConfigurationMissing(CuboxTidyError):
    notice = "Target folder or API key is not configured"


class ScopeMismatch(CuboxTidyError):
    notice = "This command only works on notes in the target folder"


class EmptyInput(CuboxTidyError):
    notice = "The note is empty, nothing to summarize"


class NoActiveNote(CuboxTidyError):
    notice = "No active note"


class ExternalCallFailure(CuboxTidyError):
    notice = "Summary request failed"


class LineOutOfRange(CuboxTidyError, IndexError):
    """A line/column position outside the buffer."""
    notice = "Line position out of range"


class StaleAnchorError(CuboxTidyError):
    """The anchor line no longer holds the placeholder written before the summary call."""
    notice = "The note changed while the summary was generating; placeholder left in place"

    def __init__(self, anchor_line: int, found: Optional[str] = None):
        self.anchor_line = anchor_line
        self.found = found
        super().__init__(f"Anchor line {anchor_line} no longer holds the placeholder (found {found!r})")
