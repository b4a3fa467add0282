"""
In-memory, line-addressable text buffer mirroring a note's editor state.
"""

from typing import Iterable, Iterator, List, Optional, Tuple

from cubox_tidy.errors import LineOutOfRange


class LineBuffer:
    """
    Ordered, mutable sequence of text lines.

    Positions are ``(line, col)`` pairs. ``(line_count(), 0)`` is accepted as the
    end-of-document position and is clipped to the end of the last line, the way
    editor buffers treat a position one past the final line.
    """

    def __init__(self, lines: Optional[Iterable[str]] = None):
        self._lines: List[str] = list(lines) if lines is not None else [""]

    @classmethod
    def from_text(cls, text: str) -> "LineBuffer":
        """Split on ``\\n`` only; ``"a\\n"`` becomes ``["a", ""]``."""
        return cls(text.split("\n"))

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    def lines(self) -> Tuple[str, ...]:
        """Snapshot of the current lines."""
        return tuple(self._lines)

    def line_count(self) -> int:
        return len(self._lines)

    def get_line(self, index: int) -> str:
        if not 0 <= index < len(self._lines):
            raise LineOutOfRange(f"Line {index} outside buffer of {len(self._lines)} lines")
        return self._lines[index]

    def _resolve(self, line: int, col: int) -> Tuple[int, int]:
        n = len(self._lines)
        if line == n and col == 0:
            if n == 0:
                return 0, 0
            return n - 1, len(self._lines[-1])
        if not 0 <= line < n:
            raise LineOutOfRange(f"Line {line} outside buffer of {n} lines")
        if not 0 <= col <= len(self._lines[line]):
            raise LineOutOfRange(f"Column {col} outside line {line} of length {len(self._lines[line])}")
        return line, col

    def replace_range(self, from_line: int, from_col: int, to_line: int, to_col: int, text: str) -> None:
        """
        Replace the half-open span ``[(from_line, from_col), (to_line, to_col))`` with ``text``.

        ``text`` may contain line breaks; the buffer is re-split so indices stay
        contiguous afterwards.
        """
        start = self._resolve(from_line, from_col)
        end = self._resolve(to_line, to_col)
        if end < start:
            raise LineOutOfRange(f"Span end {end} before start {start}")

        if not self._lines:
            self._lines = text.split("\n")
            return

        head = self._lines[start[0]][:start[1]]
        tail = self._lines[end[0]][end[1]:]
        self._lines[start[0]:end[0] + 1] = (head + text + tail).split("\n")

    def delete_line(self, index: int) -> None:
        """
        Remove line ``index`` entirely.

        Deleting the last line also removes the line break in front of it, so the
        line count always drops by one; deleting the only line leaves ``[""]``.
        """
        self.get_line(index)
        last = len(self._lines) - 1
        if index == last and index > 0:
            prev = self._lines[index - 1]
            self.replace_range(index - 1, len(prev), index, len(self._lines[index]), "")
        else:
            self.replace_range(index, 0, index + 1, 0, "")

    def set_line(self, index: int, text: str) -> None:
        """Overwrite the full span of line ``index``."""
        current = self.get_line(index)
        self.replace_range(index, 0, index, len(current), text)

    def insert_line(self, index: int, text: str) -> None:
        """Insert ``text`` as a new line at ``index``, shifting later lines down."""
        n = len(self._lines)
        if not 0 <= index <= n:
            raise LineOutOfRange(f"Cannot insert at line {index} of {n}")
        if n == 0:
            self._lines = text.split("\n")
        elif index < n:
            self.replace_range(index, 0, index, 0, text + "\n")
        else:
            last = len(self._lines[-1])
            self.replace_range(n - 1, last, n - 1, last, "\n" + text)

    def append_lines(self, *lines: str) -> int:
        """Append lines at document end and return the index of the new last line."""
        for line in lines:
            self.insert_line(len(self._lines), line)
        return len(self._lines) - 1

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._lines))

    def __eq__(self, other) -> bool:
        if isinstance(other, LineBuffer):
            return self._lines == other._lines
        return NotImplemented

    def __repr__(self) -> str:
        return f"LineBuffer({self._lines!r})"
