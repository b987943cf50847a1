from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from functools import partial
from typing import Any, Protocol

import websockets

from jobwatch.core.channel.codec import decode_event
from jobwatch.core.errors import ChannelError, DecodeError
from jobwatch.core.events import EventBus
from jobwatch.core.events.event_bus import Subscription
from jobwatch.core.events.monitor_events import ChannelStateChanged, EventDecodeFailed
from jobwatch.core.jobs.models import LifecycleEvent
from jobwatch.core.scheduling import AsyncioScheduler, Cancellable, Scheduler

logger = logging.getLogger(__name__)


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class Connection(Protocol):
    def __aiter__(self) -> AsyncIterator[str | bytes]: ...

    async def close(self) -> None: ...


Connect = Callable[[str], Awaitable[Connection]]


async def websocket_connect(url: str, *, open_timeout: float = 10.0) -> Connection:
    return await websockets.connect(url, open_timeout=open_timeout)


async def _close_quietly(conn: Connection) -> None:
    try:
        await conn.close()
    except Exception:  # noqa: BLE001
        logger.debug("Error while closing event channel connection", exc_info=True)


_STREAM_END = object()


class EventChannel:
    """Long-lived push connection that publishes decoded LifecycleEvents to the bus.

    State machine::

        disconnected -> connecting -> connected -> disconnected -> ...
                         (any state) -- close() --> closed

    Every connection is a fresh subscription: events sent while disconnected
    are not replayed. Connection failures are never raised; they schedule a
    reconnect after ``reconnect_delay_sec`` (grown by ``backoff`` per
    consecutive failure, capped at ``max_delay_sec``, optionally jittered).
    ``close()`` cancels the pending timer and the running connection, and no
    further attempt is made.
    """

    def __init__(
        self,
        url: str,
        event_bus: EventBus,
        *,
        connect: Connect | None = None,
        scheduler: Scheduler | None = None,
        reconnect_delay_sec: float = 3.0,
        backoff: float = 1.0,
        max_delay_sec: float = 30.0,
        jitter: float = 0.0,
        open_timeout_sec: float = 10.0,
    ) -> None:
        self._url = url
        self._bus = event_bus
        self._connect: Connect = connect or partial(
            websocket_connect, open_timeout=open_timeout_sec
        )
        self._scheduler = scheduler or AsyncioScheduler()
        self._delay = max(0.0, float(reconnect_delay_sec))
        self._backoff = max(1.0, float(backoff))
        self._max_delay = max(0.0, float(max_delay_sec))
        self._jitter = min(0.9, max(0.0, float(jitter)))

        self._state = ChannelState.DISCONNECTED
        self._attempts = 0
        self._failures = 0
        self._timer: Cancellable | None = None
        self._task: Cancellable | None = None
        self._streams: set[asyncio.Queue[Any]] = set()

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def attempts(self) -> int:
        """Connect attempts made so far."""
        return self._attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._timer is not None

    def subscribe(self, handler: Callable[[LifecycleEvent], None]) -> Subscription:
        return self._bus.subscribe(LifecycleEvent, handler)

    async def events(self) -> AsyncIterator[LifecycleEvent]:
        """Lazy, unbounded stream of events; ends only when the channel is closed."""
        queue: asyncio.Queue[Any] = asyncio.Queue()
        if self._state is ChannelState.CLOSED:
            return
        self._streams.add(queue)
        sub = self.subscribe(queue.put_nowait)
        try:
            while True:
                item = await queue.get()
                if item is _STREAM_END:
                    return
                yield item
        finally:
            sub.cancel()
            self._streams.discard(queue)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._state is ChannelState.CLOSED:
            logger.warning("Event channel is closed; start() ignored")
            return
        if self._task is not None or self._timer is not None:
            return
        self._connect_now()

    def close(self) -> None:
        if self._state is ChannelState.CLOSED:
            return
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        task, self._task = self._task, None
        self._set_state(ChannelState.CLOSED)
        if task is not None:
            task.cancel()
        for queue in list(self._streams):
            queue.put_nowait(_STREAM_END)
        logger.info("Event channel closed")

    async def aclose(self) -> None:
        task = self._task
        self.close()
        if isinstance(task, asyncio.Future):
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ------------------------------------------------------------------

    def _connect_now(self) -> None:
        self._timer = None
        if self._state is ChannelState.CLOSED:
            return
        self._task = self._scheduler.spawn(self._run_connection())

    async def _run_connection(self) -> None:
        self._attempts += 1
        self._set_state(ChannelState.CONNECTING)
        logger.debug("Connecting to %s", self._url, extra={"attempt": self._attempts})
        try:
            conn = await self._connect(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            logger.warning("%s", ChannelError(f"Connect to {self._url} failed", cause=e))
            self._schedule_reconnect()
            return

        if self._state is ChannelState.CLOSED:
            await _close_quietly(conn)
            return

        self._set_state(ChannelState.CONNECTED)
        logger.info("Event channel connected to %s", self._url)
        dropped: Exception | None = None
        try:
            async for raw in conn:
                self._failures = 0
                self._dispatch(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            dropped = e
        finally:
            await _close_quietly(conn)

        if self._state is ChannelState.CLOSED:
            return
        if dropped is not None:
            logger.warning("%s", ChannelError("Event channel dropped", cause=dropped))
        else:
            logger.info("Event channel closed by server")
        self._schedule_reconnect()

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            event = decode_event(raw)
        except DecodeError as e:
            logger.warning("Dropping malformed event: %s", e.message, extra={"event": "decode_error"})
            self._bus.publish(EventDecodeFailed(raw=e.raw or "", error=str(e)))
            return
        self._bus.publish(event)

    def _schedule_reconnect(self) -> None:
        self._task = None
        self._failures += 1
        self._set_state(ChannelState.DISCONNECTED)
        delay = self._next_delay()
        logger.info(
            "Reconnecting in %.1fs", delay, extra={"attempt": self._attempts, "delay_sec": delay}
        )
        self._timer = self._scheduler.call_later(delay, self._connect_now)

    def _next_delay(self) -> float:
        delay = self._delay
        if self._backoff > 1.0:
            delay = min(
                self._delay * (self._backoff ** (self._failures - 1)),
                max(self._max_delay, self._delay),
            )
        if self._jitter > 0:
            delay *= 1.0 + random.uniform(-self._jitter, self._jitter)
        return max(0.0, delay)

    def _set_state(self, state: ChannelState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        self._bus.publish(
            ChannelStateChanged(previous=previous.value, current=state.value, attempt=self._attempts)
        )
