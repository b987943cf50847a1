from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Iterator
from typing import Any

import pytest


class ManualTimer:
    def __init__(self, due: float, delay: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when a test calls ``advance``.

    Coroutines spawned inside a running loop become real tasks; spawned outside
    one they are kept in ``coros`` for the test to run.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []
        self.coros: list[Coroutine[Any, Any, Any]] = []
        self.tasks: list[asyncio.Task[Any]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, delay, callback)
        self.timers.append(timer)
        return timer

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> Any:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.coros.append(coro)
            return ManualTimer(self.now, 0.0, lambda: None)
        task = loop.create_task(coro)
        self.tasks.append(task)
        return task

    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in sorted(self.pending(), key=lambda t: t.due):
            if timer.due <= self.now and not timer.cancelled:
                timer.fired = True
                timer.callback()

    def run_coros(self) -> None:
        coros, self.coros = self.coros, []
        for coro in coros:
            asyncio.run(coro)


@pytest.fixture
def scheduler() -> Iterator[ManualScheduler]:
    sched = ManualScheduler()
    yield sched
    for coro in sched.coros:
        coro.close()
