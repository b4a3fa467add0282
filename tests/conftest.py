from __future__ import annotations

import asyncio
from datetime import date
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from cubox_tidy.app.notify import NotificationManager, reset_notification_manager
from cubox_tidy.config import AppConfig, NotificationsConfig, VaultConfig, reset_config
from cubox_tidy.events import EventRegistry, Scheduler
from cubox_tidy.llm_client import reset_llm_client
from cubox_tidy.plugin import CuboxPlugin
from cubox_tidy.settings import SettingsStore
from cubox_tidy.workspace import Vault

TODAY = date(2024, 5, 1)


@pytest.fixture(autouse=True)
def _reset_singletons():
    yield
    reset_config()
    reset_llm_client()
    reset_notification_manager()


class FakeLLMClient:
    """Stands in for LLMClient; ``during`` runs while the request is in flight."""

    def __init__(
        self,
        answer: Optional[str] = "short summary",
        during: Optional[Callable[[], None]] = None,
        delay: float = 0.0,
    ):
        self.answer = answer
        self.during = during
        self.delay = delay
        self.prompts: List[str] = []
        self.api_keys: List[Optional[str]] = []

    async def request_summary(self, prompt: str, api_key: Optional[str]) -> Optional[str]:
        self.prompts.append(prompt)
        self.api_keys.append(api_key)
        if self.during is not None:
            self.during()
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.answer


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    (root / "Cubox").mkdir(parents=True)
    (root / "Other").mkdir()
    return root


@pytest.fixture
def config(vault_dir: Path) -> AppConfig:
    return AppConfig(
        vault=VaultConfig(root=vault_dir, strip_delay_seconds=0.0, watch_interval=0.0),
        notifications=NotificationsConfig(channels=["log"]),
    )


@pytest.fixture
def notifier(config: AppConfig) -> NotificationManager:
    return NotificationManager(config)


@pytest.fixture
def vault(vault_dir: Path) -> Vault:
    return Vault(vault_dir, EventRegistry())


@pytest.fixture
def settings_store(config: AppConfig) -> SettingsStore:
    store = SettingsStore(config.settings_file)
    store.update(target_folder="Cubox", api_key="sk-test-1234567890")
    return store


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def plugin(vault, settings_store, config, fake_llm, notifier) -> CuboxPlugin:
    p = CuboxPlugin(
        vault,
        settings_store,
        config,
        llm_client=fake_llm,
        notifier=notifier,
        scheduler=Scheduler(),
        clock=lambda: TODAY,
    )
    p.on_load()
    yield p
    p.on_unload()


def write_note(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
