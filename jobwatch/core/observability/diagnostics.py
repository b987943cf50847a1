"""Log what flows over the event bus. A plain subscriber like any other."""

from __future__ import annotations

import logging

from jobwatch.core.events import ChannelStateChanged, EventBus, RefetchRequested, Subscription
from jobwatch.core.jobs.models import LifecycleEvent

logger = logging.getLogger("jobwatch.diagnostics")


def _on_event(e: LifecycleEvent) -> None:
    logger.debug(
        "%s job=%s queue=%s at %s%s",
        e.type,
        e.job_id,
        e.queue,
        e.timestamp.isoformat(),
        f" error={e.error}" if e.error else "",
        extra={"event": "lifecycle", "job_id": e.job_id, "event_type": e.type},
    )


def _on_state(e: ChannelStateChanged) -> None:
    logger.info(
        "Channel %s -> %s",
        e.previous,
        e.current,
        extra={"event": "channel_state", "state": e.current, "attempt": e.attempt},
    )


def _on_refetch(e: RefetchRequested) -> None:
    logger.debug("Re-fetch requested for %s", ", ".join(e.job_ids) or "-")


def attach_diagnostics(bus: EventBus) -> list[Subscription]:
    return [
        bus.subscribe(LifecycleEvent, _on_event),
        bus.subscribe(ChannelStateChanged, _on_state),
        bus.subscribe(RefetchRequested, _on_refetch),
    ]
