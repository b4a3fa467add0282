#!/usr/bin/env python3
"""
NotificationManager and channel plugins for user-facing notices.

Channels supported:
- Log: loguru line at the notice's level (the default, always visible in a terminal)
- Webhook: HTTP POST of the notice as JSON
- File: JSON lines appended to a file

Notes:
- send() calls are best-effort: a failing channel is logged and never breaks the command.
- A simple throttle avoids repeating the same notice within a short window.
"""

from __future__ import annotations

import json
import os
import time
from collections import deque
from typing import Deque, Dict, List, Optional

import requests
from loguru import logger

from cubox_tidy.config import get_config, AppConfig
from cubox_tidy.errors import CuboxTidyError
from cubox_tidy.models import Notice, NoticeLevel


class BaseChannel:
    def send(self, notice: Notice) -> None:
        raise NotImplementedError


class LogChannel(BaseChannel):
    _levels = {
        NoticeLevel.INFO: "INFO",
        NoticeLevel.WARNING: "WARNING",
        NoticeLevel.ERROR: "ERROR",
    }

    def send(self, notice: Notice) -> None:
        where = f" [{notice.note}]" if notice.note else ""
        logger.log(self._levels[notice.level], f"[Notice]{where} {notice.message}")


class WebhookChannel(BaseChannel):
    def __init__(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: float = 10) -> None:
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout

    def send(self, notice: Notice) -> None:
        try:
            resp = requests.post(
                self.url,
                data=notice.json(),
                headers={"Content-Type": "application/json", **self.headers},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"[Notify:Webhook] failed: {e}")


class FileChannel(BaseChannel):
    """Append JSON lines with the notice to a file."""
    def __init__(self, path: str) -> None:
        self.path = path
        d = os.path.dirname(self.path)
        if d:
            os.makedirs(d, exist_ok=True)

    def send(self, notice: Notice) -> None:
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(json.loads(notice.json()), ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning(f"[Notify:File] failed: {e}")


class NotificationManager:
    def __init__(self, config: AppConfig, history_size: int = 50) -> None:
        self.config = config
        self.channels: List[BaseChannel] = []
        self.history: Deque[Notice] = deque(maxlen=history_size)
        self._last_notice_ts: Dict[str, float] = {}
        self._throttle = max(0, int(getattr(config.notifications, "throttle_seconds", 0)))

        if not getattr(config.notifications, "enabled", True):
            logger.debug("Notifications disabled by config")
            return

        chans = [c.lower() for c in (config.notifications.channels or [])]

        if "log" in chans:
            self.channels.append(LogChannel())

        webhook_url = config.notifications.webhook_url
        if "webhook" in chans and webhook_url:
            self.channels.append(WebhookChannel(webhook_url, headers=config.notifications.webhook_headers))

        file_path = config.notifications.file_path
        if "file" in chans and file_path:
            self.channels.append(FileChannel(file_path))

        if not self.channels:
            logger.debug("NotificationManager initialized with no active channels")

    def _should_throttle(self, key: str) -> bool:
        if self._throttle <= 0:
            return False
        now = time.time()
        last = self._last_notice_ts.get(key, 0)
        if (now - last) < self._throttle:
            return True
        self._last_notice_ts[key] = now
        return False

    def notify(self, message: str, level: NoticeLevel = NoticeLevel.INFO, note: Optional[str] = None) -> Notice:
        """Record a notice and fan it out to every channel."""
        notice = Notice(message=message, level=level, note=note)
        self.history.append(notice)
        if self._should_throttle(f"{level.value}:{note}:{notice.message}"):
            return notice
        for ch in self.channels:
            ch.send(notice)
        return notice

    def warn(self, message: str, note: Optional[str] = None) -> Notice:
        return self.notify(message, NoticeLevel.WARNING, note)

    def error(self, message: str, note: Optional[str] = None) -> Notice:
        return self.notify(message, NoticeLevel.ERROR, note)

    def failure(self, exc: CuboxTidyError, note: Optional[str] = None) -> Notice:
        """Surface a handled cubox-tidy error as a notice."""
        detail = str(exc)
        message = exc.notice if detail == exc.notice else f"{exc.notice}: {detail}"
        return self.error(message, note)

    def latest(self) -> Optional[Notice]:
        return self.history[-1] if self.history else None


# Singleton accessor
_notify_manager: Optional[NotificationManager] = None

def get_notification_manager(config: Optional[AppConfig] = None) -> NotificationManager:
    """Shared manager; ``config`` only applies when it is first created."""
    global _notify_manager
    if _notify_manager is None:
        _notify_manager = NotificationManager(config or get_config())
    return _notify_manager


def reset_notification_manager() -> None:
    global _notify_manager
    _notify_manager = None
