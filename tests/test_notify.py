import json

import requests

from cubox_tidy.app import notify
from cubox_tidy.app.notify import FileChannel, LogChannel, NotificationManager, WebhookChannel
from cubox_tidy.config import AppConfig, NotificationsConfig
from cubox_tidy.errors import ScopeMismatch, StaleAnchorError
from cubox_tidy.models import NoticeLevel
from cubox_tidy.plugin import build_plugin


def _manager(**notif):
    return NotificationManager(AppConfig(notifications=NotificationsConfig(**notif)))


def test_channels_follow_config(tmp_path):
    mgr = _manager(
        channels=["log", "webhook", "file"],
        webhook_url="http://hooks.example/n",
        file_path=str(tmp_path / "out" / "notices.jsonl"),
    )
    kinds = [type(c) for c in mgr.channels]
    assert kinds == [LogChannel, WebhookChannel, FileChannel]

    assert _manager(enabled=False).channels == []
    # webhook without url is skipped
    assert _manager(channels=["webhook"]).channels == []


def test_history_and_latest():
    mgr = _manager(channels=[])
    assert mgr.latest() is None
    mgr.notify("first")
    mgr.warn("second", note="Cubox/a.md")
    latest = mgr.latest()
    assert latest.message == "second"
    assert latest.level is NoticeLevel.WARNING
    assert latest.note == "Cubox/a.md"
    assert len(mgr.history) == 2


def test_failure_message_uses_error_notice():
    mgr = _manager(channels=[])
    assert mgr.failure(ScopeMismatch()).message == ScopeMismatch.notice
    detailed = mgr.failure(ScopeMismatch("Only notes in 'Cubox' are handled"))
    assert detailed.message == f"{ScopeMismatch.notice}: Only notes in 'Cubox' are handled"
    assert detailed.level is NoticeLevel.ERROR
    stale = mgr.failure(StaleAnchorError(3, "# 总结"))
    assert stale.message.startswith(StaleAnchorError.notice)


def test_file_channel_writes_json_lines(tmp_path):
    path = tmp_path / "logs" / "notices.jsonl"
    mgr = _manager(channels=["file"], file_path=str(path))
    mgr.notify("Summary added", note="Cubox/a.md")
    mgr.error("Summary request failed")

    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["message"] for r in rows] == ["Summary added", "Summary request failed"]
    assert rows[0]["note"] == "Cubox/a.md"
    assert rows[1]["level"] == "error"


def test_webhook_posts_notice(monkeypatch):
    calls = []

    class Resp:
        def raise_for_status(self):
            return None

    def fake_post(url, data=None, headers=None, timeout=None):
        calls.append((url, json.loads(data), headers))
        return Resp()

    monkeypatch.setattr(notify.requests, "post", fake_post)
    mgr = _manager(channels=["webhook"], webhook_url="http://hooks.example/n", webhook_headers={"X-Token": "t"})
    mgr.notify("hello")

    url, body, headers = calls[0]
    assert url == "http://hooks.example/n"
    assert body["message"] == "hello"
    assert headers["X-Token"] == "t"
    assert headers["Content-Type"] == "application/json"


def test_webhook_failure_does_not_raise(monkeypatch):
    def failing_post(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(notify.requests, "post", failing_post)
    mgr = _manager(channels=["webhook"], webhook_url="http://hooks.example/n")
    assert mgr.notify("still recorded").message == "still recorded"


def test_throttle_suppresses_repeats(tmp_path):
    path = tmp_path / "n.jsonl"
    mgr = _manager(channels=["file"], file_path=str(path), throttle_seconds=60)
    mgr.notify("same")
    mgr.notify("same")
    mgr.notify("different")
    assert len(path.read_text(encoding="utf-8").splitlines()) == 2
    assert len(mgr.history) == 3


def test_plugin_shares_global_manager(config):
    plugin = build_plugin(config)
    assert plugin.notifier is notify.get_notification_manager()
    assert notify.get_notification_manager() is notify.get_notification_manager(AppConfig())
    notify.reset_notification_manager()
    assert notify.get_notification_manager() is not plugin.notifier
