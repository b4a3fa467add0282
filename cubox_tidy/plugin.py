"""
CuboxPlugin: ties settings, vault events and the two note commands together.

Commands:
- format: strip Cubox annotations from a note
- summarize: ask the LLM for a short summary and write it under the summary section
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from cubox_tidy.annotation_stripper import AnnotationStripper, get_annotation_stripper
from cubox_tidy.app.notify import NotificationManager, get_notification_manager
from cubox_tidy.config import AppConfig, get_config
from cubox_tidy.errors import (
    ConfigurationMissing,
    CuboxTidyError,
    EmptyInput,
    NoActiveNote,
    ScopeMismatch,
)
from cubox_tidy.events import EventRegistry, Scheduler
from cubox_tidy.frontmatter import stamp_created
from cubox_tidy.llm_client import LLMClient
from cubox_tidy.models import EventKind, NoteSettings, SummaryOutcome
from cubox_tidy.section_injector import SectionInjector
from cubox_tidy.settings import SettingsStore
from cubox_tidy.utils.prompts import render_summary_prompt
from cubox_tidy.workspace import Vault


class CuboxPlugin:
    """Plugin host glue around the stripper and the section injector."""

    def __init__(
        self,
        vault: Vault,
        settings_store: SettingsStore,
        config: Optional[AppConfig] = None,
        llm_client: Optional[LLMClient] = None,
        notifier: Optional[NotificationManager] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.vault = vault
        self.settings_store = settings_store
        self.config = config or get_config()
        self.notifier = notifier or get_notification_manager(self.config)
        self.llm_client = llm_client or LLMClient(self.config.llm, notifier=self.notifier)
        self.scheduler = scheduler or Scheduler()
        self.clock = clock
        self.stripper: AnnotationStripper = get_annotation_stripper()
        self.injector = SectionInjector(self.config.summary.entry_prefix)
        self._loaded = False

    @property
    def settings(self) -> NoteSettings:
        return self.settings_store.settings

    def on_load(self) -> None:
        self.settings_store.load()
        self.vault.events.on(EventKind.CREATE, self.on_file_created)
        self._loaded = True
        logger.info(f"Plugin loaded; target folder={self.settings.target_folder!r}")

    def on_unload(self) -> None:
        if self._loaded:
            self.vault.events.off(EventKind.CREATE, self.on_file_created)
        self.scheduler.cancel_all()
        self._loaded = False

    def in_target_folder(self, path) -> bool:
        return self.vault.parent_folder(path) == self.settings.target_folder

    # ---- create hook ----

    def on_file_created(self, path) -> None:
        """Stamp the created date and schedule a strip for new notes in the target folder."""
        if not self.settings.target_folder:
            return
        rel = self.vault.relative(path)
        if not self.in_target_folder(rel):
            logger.debug(f"Ignoring new file outside target folder: {rel}")
            return

        if self.vault.exists(rel):
            try:
                content = self.vault.read(rel)
            except UnicodeDecodeError:
                logger.debug(f"Skipping binary file {rel}")
                return
            stamped = stamp_created(content, self.clock())
            if stamped != content:
                self.vault.modify(rel, stamped)
                logger.info(f"Stamped created date on {rel}")

        if ".md" in Path(rel).name:
            self.scheduler.call_later(self.config.vault.strip_delay_seconds, self.format_note, rel)

    # ---- format command ----

    def format_note(self, path) -> bool:
        """Strip annotations from a note; returns True when the note changed."""
        rel = self.vault.relative(path)
        buffer = self.vault.open_buffer(rel)
        before = buffer.lines()
        self.stripper.strip(buffer)
        if buffer.lines() == before:
            logger.debug(f"No annotations in {rel}")
            return False
        self.vault.save_buffer(rel, buffer)
        logger.info(f"Formatted {rel}: {len(before) - buffer.line_count()} lines removed")
        return True

    def check_scope(self, rel: str, need_api_key: bool = False) -> NoteSettings:
        settings = self.settings
        if not settings.target_folder or (need_api_key and not settings.api_key):
            raise ConfigurationMissing()
        if not self.in_target_folder(rel):
            raise ScopeMismatch(f"Only notes in {settings.target_folder!r} are handled")
        return settings

    def format_active_note(self) -> Optional[bool]:
        """
        Format the active note.

        Returns whether the note changed, or None after posting a notice when
        there is no active note or it is out of scope.
        """
        try:
            if not self.vault.active_note or not self.vault.exists(self.vault.active_note):
                raise NoActiveNote()
            self.check_scope(self.vault.active_note)
            return self.format_note(self.vault.active_note)
        except CuboxTidyError as e:
            self.notifier.failure(e, note=self.vault.active_note)
            return None

    # ---- summarize command ----

    async def summarize_note(self, path) -> SummaryOutcome:
        """
        Summarize a note into its summary section.

        The placeholder is written and saved before the request. If the request
        fails the placeholder stays in the note and the outcome is not completed.

        Raises:
            ConfigurationMissing, ScopeMismatch, EmptyInput: before anything is written
            StaleAnchorError: the placeholder line changed while waiting
        """
        rel = self.vault.relative(path)
        settings = self.check_scope(rel, need_api_key=True)

        text = self.vault.read(rel)
        if not text.strip():
            raise EmptyInput()

        summary_cfg = self.config.summary
        prompt = render_summary_prompt(text, summary_cfg.prompt_template, self.config.llm.max_prompt_tokens)

        buffer = self.vault.open_buffer(rel)
        anchor = self.injector.begin_section(buffer, summary_cfg.section_title, summary_cfg.placeholder)
        self.vault.save_buffer(rel, buffer)
        logger.info(f"Requesting summary for {rel} (placeholder at line {anchor})")

        answer = await self.llm_client.request_summary(prompt, settings.api_key)
        if answer is None:
            return SummaryOutcome(note=rel, anchor_line=anchor)

        # Pick up whatever happened to the note while waiting
        buffer = self.vault.open_buffer(rel)
        expected = summary_cfg.placeholder if summary_cfg.verify_anchor else None
        self.injector.complete_section(buffer, anchor, answer, placeholder=expected)
        self.vault.save_buffer(rel, buffer)
        self.notifier.notify("Summary added", note=rel)
        return SummaryOutcome(note=rel, anchor_line=anchor, summary=answer, completed=True)

    async def summarize_active_note(self) -> Optional[str]:
        """Summarize the active note; failures become notices and None."""
        try:
            if not self.vault.active_note:
                raise NoActiveNote()
            outcome = await self.summarize_note(self.vault.active_note)
        except CuboxTidyError as e:
            self.notifier.failure(e, note=self.vault.active_note)
            return None
        return outcome.summary if outcome.completed else None


def build_plugin(config: Optional[AppConfig] = None, vault_root: Optional[Path] = None) -> CuboxPlugin:
    """Build a plugin over the configured vault and settings file."""
    cfg = config or get_config()
    if vault_root is not None:
        cfg.vault.root = Path(vault_root)
    vault = Vault(cfg.vault.root, EventRegistry(), note_suffix=cfg.vault.note_suffix)
    store = SettingsStore(cfg.settings_file)
    return CuboxPlugin(vault, store, cfg)
