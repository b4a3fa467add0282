"""
Event dispatch and delayed one-shot tasks for the plugin host.

- EventRegistry: explicit (event kind -> handlers) subscription and dispatch
- Scheduler: fire-and-forget delayed callbacks on the running asyncio loop
- HostLoop: a background thread running the host's single event loop, so
  synchronous callers (the HTTP API) can hand work to it
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from collections import defaultdict
from concurrent.futures import Future
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from loguru import logger

from cubox_tidy.models import EventKind

Handler = Callable[..., Any]


class EventRegistry:
    def __init__(self) -> None:
        self._handlers: Dict[EventKind, List[Handler]] = defaultdict(list)

    def on(self, kind: EventKind, handler: Handler) -> Handler:
        """Register ``handler`` for ``kind``; returns it so it can be used as a decorator."""
        self._handlers[kind].append(handler)
        logger.debug(f"Registered handler {getattr(handler, '__qualname__', handler)} for {kind.value}")
        return handler

    def off(self, kind: EventKind, handler: Handler) -> None:
        try:
            self._handlers[kind].remove(handler)
        except ValueError:
            logger.debug(f"Handler not registered for {kind.value}")

    def handlers(self, kind: EventKind) -> List[Handler]:
        return list(self._handlers.get(kind, []))

    def emit(self, kind: EventKind, *args: Any) -> List[Any]:
        """Call every handler in registration order; coroutine results are returned unawaited."""
        results = []
        for handler in self.handlers(kind):
            try:
                results.append(handler(*args))
            except Exception as e:
                logger.error(f"Handler for {kind.value} failed: {e}")
                raise
        return results

    async def emit_async(self, kind: EventKind, *args: Any) -> List[Any]:
        """Like emit, awaiting handlers that return awaitables."""
        results = []
        for handler in self.handlers(kind):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
            except Exception as e:
                logger.error(f"Handler for {kind.value} failed: {e}")
                raise
        return results


class Scheduler:
    """
    One-shot delayed tasks on the running asyncio loop.

    Fire-and-forget: a scheduled task cannot be cancelled individually and
    its failure is only logged. ``cancel_all`` drops whatever is still pending.
    """

    def __init__(self) -> None:
        self._handles: Set[asyncio.TimerHandle] = set()
        self._tasks: Set[asyncio.Task] = set()

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> None:
        loop = asyncio.get_running_loop()
        handle: Optional[asyncio.TimerHandle] = None

        def _fire() -> None:
            self._handles.discard(handle)
            try:
                result = fn(*args)
            except Exception as e:
                logger.error(f"Scheduled task {getattr(fn, '__qualname__', fn)} failed: {e}")
                return
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)

        handle = loop.call_later(delay, _fire)
        self._handles.add(handle)
        logger.debug(f"Scheduled {getattr(fn, '__qualname__', fn)} in {delay:.2f}s")

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Scheduled task failed: {task.exception()}")

    @property
    def pending(self) -> int:
        return len(self._handles) + len(self._tasks)

    async def drain(self) -> None:
        """Wait until every scheduled callback has fired and finished."""
        while self._handles or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(0.01)

    def cancel_all(self) -> None:
        for handle in list(self._handles):
            handle.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._handles.clear()
        self._tasks.clear()


class HostLoop:
    """The host's single event loop, run on a daemon thread."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread: Optional[threading.Thread] = None
        self._started = False

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> "HostLoop":
        if not self._started:
            if self.loop.is_closed():
                self.loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._run, name="cubox-tidy-host", daemon=True)
            self._thread.start()
            self._started = True
        return self

    def submit(self, coro: Awaitable[Any]) -> Future:
        """Schedule a coroutine on the host loop from another thread."""
        self.start()
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        return self.submit(coro).result(timeout)

    def stop(self) -> None:
        if self._started:
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join(timeout=5)
            self.loop.close()
            self._started = False
