from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol

from jobwatch.core.errors import ReferenceGap, TransportError
from jobwatch.core.events import EventBus
from jobwatch.core.events.event_bus import Subscription
from jobwatch.core.events.monitor_events import EventLogUpdated, JobsViewChanged, RefetchRequested
from jobwatch.core.jobs.event_log import EventLog
from jobwatch.core.jobs.filter_view import MATCH_ALL, JobFilter, filter_jobs
from jobwatch.core.jobs.models import STATUS_PROCESSING, Job, LifecycleEvent
from jobwatch.core.scheduling import AsyncioScheduler, Debouncer, Scheduler

logger = logging.getLogger(__name__)


class SnapshotFetcher(Protocol):
    async def fetch(
        self, status: str | None = None, queue: str | None = None, limit: int = 100
    ) -> list[Job]:
        """Pull jobs matching the filters; raises TransportError on failure."""


def merge_event(job: Job, event: LifecycleEvent) -> Job:
    """Apply one lifecycle event to a known job.

    Only status, ``updated_at`` and the lock pair change. An event older than the
    record is ignored entirely and the same object is returned.
    """
    if job.updated_at is not None and event.timestamp < job.updated_at:
        return job

    status = event.status
    locked_by = job.locked_by
    locked_at = job.locked_at
    if status == STATUS_PROCESSING:
        # The payload belongs to the job's producer and is never inspected.
        if event.locked_by:
            locked_by = event.locked_by
        if event.locked_at is not None:
            locked_at = event.locked_at
    else:
        locked_by = None
        locked_at = None

    return replace(
        job,
        status=status,
        updated_at=event.timestamp,
        locked_by=locked_by,
        locked_at=locked_at,
    )


class ReconciliationEngine:
    """Owns the canonical job mapping and the filtered view derived from it.

    ``apply_snapshot`` and ``apply_event`` are the only ways state changes. Both
    finish by swapping in a freshly computed view, so a reader never sees a
    half-applied update. Lifecycle events arrive through the event bus, the
    same way any other subscriber receives them.

    Must be driven from a single event loop; there is no locking.
    """

    def __init__(
        self,
        event_bus: EventBus,
        *,
        fetcher: SnapshotFetcher | None = None,
        scheduler: Scheduler | None = None,
        refetch_debounce_sec: float = 0.5,
        max_events: int = 200,
        fetch_limit: int = 100,
        subscribe: bool = True,
    ) -> None:
        self._bus = event_bus
        self._fetcher = fetcher
        self._scheduler = scheduler or AsyncioScheduler()
        self._fetch_limit = fetch_limit
        self._jobs: dict[str, Job] = {}
        self._filter: JobFilter = MATCH_ALL
        self._view: tuple[Job, ...] = ()
        self._log = EventLog(max_events)
        self._missing: dict[str, None] = {}
        self._refetch = Debouncer(self._scheduler, refetch_debounce_sec, self._start_refetch)
        self._closed = False
        self._subscriptions: list[Subscription] = []
        if subscribe:
            self._subscriptions.append(self._bus.subscribe(LifecycleEvent, self.apply_event))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def apply_snapshot(self, jobs: Iterable[Job]) -> None:
        """Upsert every job, overwriting existing records with the same id.

        Jobs missing from the batch are kept: a filtered fetch says nothing
        about jobs outside its filter.
        """
        batch = list(jobs)
        for job in batch:
            self._jobs[job.id] = job
            self._missing.pop(job.id, None)
        logger.debug("Applied snapshot of %d jobs (%d known)", len(batch), len(self._jobs))
        self._refresh_view()

    def apply_event(self, event: LifecycleEvent) -> None:
        self._log.push(event)
        current = self._jobs.get(event.job_id)
        if current is None:
            self._on_reference_gap(event)
        else:
            updated = merge_event(current, event)
            if updated is current:
                logger.debug(
                    "Ignoring stale %s event for job %s",
                    event.type,
                    event.job_id,
                    extra={"job_id": event.job_id, "event_type": event.type},
                )
            else:
                if not updated.is_known_status:
                    logger.info(
                        "Job %s moved to unrecognised status %r",
                        event.job_id,
                        updated.status,
                        extra={"job_id": event.job_id, "event_type": event.type},
                    )
                self._jobs[event.job_id] = updated
                self._refresh_view()
        self._bus.publish(EventLogUpdated(latest=event, size=len(self._log)))

    def set_filter(self, predicate: JobFilter) -> None:
        self._filter = predicate
        self._refresh_view()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def filter(self) -> JobFilter:
        return self._filter

    def view(self) -> list[Job]:
        return list(self._view)

    def event_log(self) -> list[LifecycleEvent]:
        return self._log.entries()

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def known_ids(self) -> set[str]:
        return set(self._jobs)

    def __len__(self) -> int:
        return len(self._jobs)

    # ------------------------------------------------------------------
    # Re-fetch on unknown ids
    # ------------------------------------------------------------------

    @property
    def refetch_pending(self) -> bool:
        return self._refetch.pending

    async def refetch_all(self) -> None:
        """Unfiltered re-fetch. Failures are logged; the view just stays stale."""
        if self._fetcher is None:
            return
        try:
            jobs = await self._fetcher.fetch(limit=self._fetch_limit)
        except TransportError as e:
            logger.warning("Re-fetch after unknown job events failed: %s", e)
            return
        if self._closed:
            return
        self.apply_snapshot(jobs)

    def _on_reference_gap(self, event: LifecycleEvent) -> None:
        gap = ReferenceGap(f"{event.type} event for unknown job {event.job_id}", job_id=event.job_id)
        logger.debug(str(gap), extra={"job_id": event.job_id, "event_type": event.type})
        if self._fetcher is None or self._closed:
            return
        self._missing[event.job_id] = None
        self._refetch.trigger()

    def _start_refetch(self) -> None:
        if self._closed:
            return
        ids = tuple(self._missing)
        self._missing.clear()
        logger.info("Re-fetching jobs after events for %d unknown id(s)", len(ids))
        self._bus.publish(RefetchRequested(job_ids=ids))
        self._scheduler.spawn(self.refetch_all())

    # ------------------------------------------------------------------

    def _refresh_view(self) -> None:
        self._view = tuple(filter_jobs(self._jobs.values(), self._filter))
        self._bus.publish(JobsViewChanged(jobs=self._view, total=len(self._jobs)))

    def close(self) -> None:
        self._closed = True
        self._refetch.cancel()
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
