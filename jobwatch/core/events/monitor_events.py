from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jobwatch.core.jobs.models import Job, LifecycleEvent


@dataclass(frozen=True, slots=True)
class ChannelStateChanged:
    previous: str
    current: str
    attempt: int = 0


@dataclass(frozen=True, slots=True)
class EventDecodeFailed:
    """A push message was dropped because it could not be decoded."""

    raw: str
    error: str


@dataclass(frozen=True, slots=True)
class JobsViewChanged:
    """The filtered view was recomputed. ``jobs`` is already ordered."""

    jobs: tuple[Job, ...]
    total: int  # size of the canonical mapping, before filtering


@dataclass(frozen=True, slots=True)
class EventLogUpdated:
    latest: LifecycleEvent
    size: int


@dataclass(frozen=True, slots=True)
class RefetchRequested:
    """Events referenced unknown jobs; a full re-fetch is starting."""

    job_ids: tuple[str, ...]
