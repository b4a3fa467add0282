"""
Vault: the folder of Markdown notes the plugin works on.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Set, Tuple, Union

from loguru import logger

from cubox_tidy.errors import NoActiveNote, ScopeMismatch
from cubox_tidy.events import EventRegistry
from cubox_tidy.line_buffer import LineBuffer
from cubox_tidy.models import EventKind

PathLike = Union[str, Path]


class Vault:
    """
    Notes addressed by vault-relative posix paths (``"Cubox/article.md"``).

    Whole-file reads and writes go straight to disk; ``active_note`` stands in
    for the note open in the editor.
    """

    def __init__(self, root: PathLike, events: Optional[EventRegistry] = None, note_suffix: str = ".md"):
        self.root = Path(root).resolve()
        self.events = events or EventRegistry()
        self.note_suffix = note_suffix
        self.active_note: Optional[str] = None

    def relative(self, path: PathLike) -> str:
        """Vault-relative posix path; paths outside the vault are rejected."""
        p = Path(path)
        absolute = (p if p.is_absolute() else self.root / p).resolve()
        try:
            return absolute.relative_to(self.root).as_posix()
        except ValueError:
            raise ScopeMismatch(f"{path} is outside the vault {self.root}") from None

    def resolve(self, path: PathLike) -> Path:
        return self.root / self.relative(path)

    def parent_folder(self, path: PathLike) -> str:
        parent = Path(self.relative(path)).parent.as_posix()
        return "" if parent == "." else parent

    def exists(self, path: PathLike) -> bool:
        return self.resolve(path).is_file()

    def is_note(self, path: PathLike) -> bool:
        return Path(self.relative(path)).name.endswith(self.note_suffix)

    def list_files(self, folder: str = "") -> List[str]:
        """Every file under ``folder``, skipping hidden files and folders."""
        base = self.root / folder if folder else self.root
        if not base.is_dir():
            return []
        files = []
        for p in base.rglob("*"):
            rel = p.relative_to(self.root)
            if p.is_file() and not any(part.startswith(".") for part in rel.parts):
                files.append(rel.as_posix())
        return sorted(files)

    def list_notes(self, folder: str = "") -> List[str]:
        return [f for f in self.list_files(folder) if f.endswith(self.note_suffix)]

    def read(self, path: PathLike) -> str:
        target = self.resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"Note not found: {self.relative(path)}")
        return target.read_text(encoding="utf-8")

    def modify(self, path: PathLike, content: str) -> None:
        target = self.resolve(path)
        target.write_text(content, encoding="utf-8")
        logger.debug(f"Wrote {len(content)} chars to {self.relative(path)}")
        self.events.emit(EventKind.MODIFY, self.relative(path))

    async def create(self, path: PathLike, content: str = "") -> str:
        """Create a note and dispatch the create event to its handlers."""
        rel = self.relative(path)
        target = self.root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.info(f"Created note {rel}")
        await self.events.emit_async(EventKind.CREATE, rel)
        return rel

    def open_buffer(self, path: PathLike) -> LineBuffer:
        return LineBuffer.from_text(self.read(path))

    def save_buffer(self, path: PathLike, buffer: LineBuffer) -> None:
        self.modify(path, buffer.text)

    def set_active(self, path: Optional[PathLike]) -> None:
        self.active_note = self.relative(path) if path is not None else None

    def get_active_buffer(self) -> Tuple[str, LineBuffer]:
        if not self.active_note or not self.exists(self.active_note):
            raise NoActiveNote()
        return self.active_note, self.open_buffer(self.active_note)


class VaultWatcher:
    """Poll a vault for new files (notes and attachments) and emit create events for them."""

    def __init__(self, vault: Vault, folder: str = "", interval: float = 2.0):
        self.vault = vault
        self.folder = folder
        self.interval = interval
        self._seen: Set[str] = set(vault.list_files(folder))

    async def poll_once(self) -> List[str]:
        current = set(self.vault.list_files(self.folder))
        created = sorted(current - self._seen)
        self._seen = current
        for rel in created:
            logger.info(f"Detected new file {rel}")
            await self.vault.events.emit_async(EventKind.CREATE, rel)
        return created

    async def run(self, stop_after: Optional[int] = None) -> None:
        """Poll until cancelled, or for ``stop_after`` rounds."""
        rounds = 0
        while stop_after is None or rounds < stop_after:
            await self.poll_once()
            rounds += 1
            await asyncio.sleep(self.interval)
