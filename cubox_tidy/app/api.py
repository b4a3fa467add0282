"""
API blueprint for cubox-tidy.

Endpoints:
- GET  /api/health
- GET  /api/settings
- PUT  /api/settings          {target_folder?, api_key?}
- POST /api/notes/strip       {path, force?}
- POST /api/notes/summarize   {path}
- POST /api/notes/created     {path, content?}
- GET  /api/notices
"""

from __future__ import annotations

from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any, Callable, Dict, Optional, Tuple

from flask import Blueprint, current_app, jsonify, request
from loguru import logger

from cubox_tidy.errors import (
    ConfigurationMissing,
    CuboxTidyError,
    EmptyInput,
    LineOutOfRange,
    ScopeMismatch,
    StaleAnchorError,
)
from cubox_tidy.models import EventKind

api_bp = Blueprint("api", __name__)

_STATUS_BY_ERROR = [
    (ConfigurationMissing, 400),
    (EmptyInput, 400),
    (ScopeMismatch, 409),
    (StaleAnchorError, 409),
    (LineOutOfRange, 409),
]


def _ctx() -> Dict[str, Any]:
    return current_app.extensions["cubox_tidy"]


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    return fn(*args)


def _host_timeout(default: float) -> float:
    return _ctx()["config"].web.request_timeout or default


def _run_on_host(coro, timeout: Optional[float] = None) -> Any:
    """Run a coroutine on the host loop; on timeout the pending work is cancelled."""
    future = _ctx()["host"].submit(coro)
    try:
        return future.result(_host_timeout(30.0) if timeout is None else timeout)
    except FuturesTimeout:
        future.cancel()
        raise


def _timed_out(note: str) -> Tuple[Any, int]:
    notice = _ctx()["plugin"].notifier.error("Timed out waiting for the note operation", note=note)
    return jsonify({"ok": False, "error": notice.message, "kind": "Timeout"}), 504


def _error(exc: Exception, note: str | None = None) -> Tuple[Any, int]:
    plugin = _ctx()["plugin"]
    if isinstance(exc, FileNotFoundError):
        return jsonify({"ok": False, "error": str(exc)}), 404
    status = 500
    for kind, code in _STATUS_BY_ERROR:
        if isinstance(exc, kind):
            status = code
            break
    notice = plugin.notifier.failure(exc, note=note)
    return jsonify({"ok": False, "error": notice.message, "kind": type(exc).__name__}), status


def _require_path() -> str:
    payload = request.get_json(silent=True) or {}
    path = (payload.get("path") or "").strip()
    if not path:
        raise ValueError("Missing 'path'")
    return path


@api_bp.get("/health")
def api_health():
    cfg = _ctx()["config"]
    return jsonify({"ok": True, "model": cfg.llm.model, "api_base": cfg.llm.api_base})


@api_bp.get("/settings")
def api_get_settings():
    return jsonify({"ok": True, "settings": _ctx()["plugin"].settings_store.public_view()})


@api_bp.put("/settings")
def api_put_settings():
    payload = request.get_json(silent=True) or {}
    store = _ctx()["plugin"].settings_store
    try:
        store.update(target_folder=payload.get("target_folder"), api_key=payload.get("api_key"))
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    return jsonify({"ok": True, "settings": store.public_view()})


@api_bp.post("/notes/strip")
def api_strip():
    plugin = _ctx()["plugin"]
    try:
        path = _require_path()
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    force = bool((request.get_json(silent=True) or {}).get("force"))
    try:
        rel = plugin.vault.relative(path)
        if not force:
            plugin.check_scope(rel)
        changed = _run_on_host(_call(plugin.format_note, rel))
    except FuturesTimeout:
        return _timed_out(path)
    except (CuboxTidyError, FileNotFoundError) as e:
        return _error(e, note=path)
    return jsonify({"ok": True, "path": rel, "changed": changed})


@api_bp.post("/notes/summarize")
def api_summarize():
    plugin = _ctx()["plugin"]
    try:
        path = _require_path()
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    timeout = _host_timeout(float(plugin.config.llm.timeout) + 10.0)
    try:
        outcome = _run_on_host(plugin.summarize_note(path), timeout)
    except FuturesTimeout:
        return _timed_out(path)
    except (CuboxTidyError, FileNotFoundError) as e:
        return _error(e, note=path)
    if not outcome.completed:
        latest = plugin.notifier.latest()
        logger.warning(f"Summary not completed for {outcome.note}")
        return jsonify({
            "ok": False,
            "error": latest.message if latest else "Summary request failed",
            "outcome": outcome.dict(),
        }), 502
    return jsonify({"ok": True, "outcome": outcome.dict()})


@api_bp.post("/notes/created")
def api_created():
    plugin = _ctx()["plugin"]
    payload = request.get_json(silent=True) or {}
    try:
        path = _require_path()
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    try:
        if "content" in payload:
            rel = _run_on_host(plugin.vault.create(path, payload.get("content") or ""))
        else:
            rel = plugin.vault.relative(path)
            if not plugin.vault.exists(rel):
                raise FileNotFoundError(f"Note not found: {rel}")
            _run_on_host(plugin.vault.events.emit_async(EventKind.CREATE, rel))
    except FuturesTimeout:
        return _timed_out(path)
    except (CuboxTidyError, FileNotFoundError) as e:
        return _error(e, note=path)
    return jsonify({"ok": True, "path": rel, "pending": plugin.scheduler.pending})


@api_bp.get("/notices")
def api_notices():
    notices = [n.dict() for n in _ctx()["plugin"].notifier.history]
    return jsonify({"ok": True, "notices": notices})
