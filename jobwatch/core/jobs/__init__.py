"""Job state for the monitor: records, events, the reconciliation engine and its view."""

from .event_log import EventLog
from .filter_view import MATCH_ALL, JobFilter, filter_jobs
from .models import KNOWN_STATUSES, Job, LifecycleEvent, status_for_event_type
from .reconciler import ReconciliationEngine, SnapshotFetcher, merge_event

__all__ = [
    "EventLog",
    "Job",
    "JobFilter",
    "KNOWN_STATUSES",
    "LifecycleEvent",
    "MATCH_ALL",
    "ReconciliationEngine",
    "SnapshotFetcher",
    "filter_jobs",
    "merge_event",
    "status_for_event_type",
]
