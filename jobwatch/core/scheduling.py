"""Cancellable timers and background tasks.

Everything long-lived in the monitor (reconnect delays, re-fetch debounce,
connection loops) goes through a ``Scheduler`` so ``close()`` can cancel it
deterministically and tests can drive time by hand.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        """Run ``callback`` after ``delay`` seconds unless cancelled first."""

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> Cancellable:
        """Run ``coro`` in the background."""


class AsyncioScheduler:
    """Scheduler backed by the running asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        # Strong refs: the loop only keeps weak references to tasks.
        self._tasks: set[asyncio.Task[Any]] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(max(0.0, delay), callback)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = self._get_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed", exc_info=exc)

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class Debouncer:
    """Coalesce bursts of triggers into one call per window (trailing edge)."""

    def __init__(
        self, scheduler: Scheduler, window_sec: float, callback: Callable[[], None]
    ) -> None:
        self._scheduler = scheduler
        self._window_sec = float(window_sec)
        self._callback = callback
        self._handle: Cancellable | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> bool:
        """Schedule the callback; returns False if one is already pending."""
        if self._handle is not None:
            return False
        self._handle = self._scheduler.call_later(self._window_sec, self._fire)
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()
