from __future__ import annotations

from collections import deque

from jobwatch.core.jobs.models import LifecycleEvent


class EventLog:
    """Newest-first, size-capped record of received lifecycle events.

    Observational only: nothing here is ever read back into job state.
    """

    def __init__(self, max_events: int = 200) -> None:
        self._events: deque[LifecycleEvent] = deque(maxlen=max(1, int(max_events)))

    def push(self, event: LifecycleEvent) -> None:
        self._events.appendleft(event)

    def entries(self) -> list[LifecycleEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
