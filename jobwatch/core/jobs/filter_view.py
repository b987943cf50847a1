"""Filtered, ordered projection of the canonical job mapping.

Pure functions only: no state, no I/O. The engine calls ``filter_jobs`` after
every mutation and hands the result to the display layer.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from jobwatch.core.jobs.models import Job

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class JobFilter:
    """Exact-match filter on status and queue. ``None`` matches everything."""

    status: str | None = None
    queue: str | None = None

    @classmethod
    def of(cls, status: str | None = None, queue: str | None = None) -> JobFilter:
        # Blank form fields mean "any".
        return cls(status=(status or "").strip() or None, queue=(queue or "").strip() or None)

    @property
    def is_empty(self) -> bool:
        return self.status is None and self.queue is None

    def matches(self, job: Job) -> bool:
        if self.status is not None and job.status != self.status:
            return False
        if self.queue is not None and job.queue != self.queue:
            return False
        return True


MATCH_ALL = JobFilter()


def view_order_key(job: Job) -> tuple[bool, datetime, str]:
    """Newest first by creation time; id breaks ties; undated jobs go last."""
    created = job.created_at
    return (created is not None, created or _EPOCH, job.id)


def filter_jobs(jobs: Iterable[Job], predicate: JobFilter = MATCH_ALL) -> list[Job]:
    return sorted((j for j in jobs if predicate.matches(j)), key=view_order_key, reverse=True)
