"""
Persisted user settings (target folder and API key).

Loaded once at startup; every change goes through ``SettingsStore.update``,
which writes the file before returning.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from pydantic import ValidationError

from cubox_tidy.errors import ConfigurationMissing
from cubox_tidy.models import NoteSettings


class SettingsStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._settings: Optional[NoteSettings] = None

    def load(self) -> NoteSettings:
        """Read settings from disk, falling back to defaults when the file is absent."""
        if not self.path.exists():
            logger.debug(f"No settings file at {self.path}; using defaults")
            self._settings = NoteSettings()
            return self._settings
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            self._settings = NoteSettings(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigurationMissing(f"Invalid settings file {self.path}: {e}") from e
        logger.debug(f"Loaded settings from {self.path}")
        return self._settings

    @property
    def settings(self) -> NoteSettings:
        if self._settings is None:
            return self.load()
        return self._settings

    def update(self, **changes: Any) -> NoteSettings:
        """Apply changes and persist them."""
        unknown = set(changes) - set(NoteSettings.__fields__)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        merged = {**self.settings.dict(), **{k: v for k, v in changes.items() if v is not None}}
        self._settings = NoteSettings(**merged)
        self.save()
        return self._settings

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.settings.dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info(f"Settings saved to {self.path}")

    def public_view(self) -> dict:
        """Settings with the API key masked."""
        s = self.settings
        masked = ""
        if s.api_key:
            masked = s.api_key[:3] + "…" + s.api_key[-2:] if len(s.api_key) > 8 else "***"
        return {"target_folder": s.target_folder, "api_key": masked, "configured": s.is_configured}
