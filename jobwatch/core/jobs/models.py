"""Job records and lifecycle events as seen by the monitor.

Both are frozen: the canonical mapping swaps whole records instead of mutating
them, so a view handed to the display layer can never change underneath it.

Decoding is lenient in the same way the backend contract is loose: missing
optional fields get defaults, timestamps accept RFC 3339 with any fractional
precision, and both ``snake_case`` keys and the backend's exported Go field
names (``ID``, ``Queue``...) are understood.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from jobwatch.core.errors import DecodeError

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

KNOWN_STATUSES = (
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_CANCELLED,
)

# Event types emitted by the backend (created/started/succeeded/failed) plus the
# plain status names some deployments send instead.
EVENT_STATUS = {
    "created": STATUS_PENDING,
    "pending": STATUS_PENDING,
    "retrying": STATUS_PENDING,
    "started": STATUS_PROCESSING,
    "processing": STATUS_PROCESSING,
    "succeeded": STATUS_COMPLETED,
    "completed": STATUS_COMPLETED,
    "failed": STATUS_FAILED,
    "cancelled": STATUS_CANCELLED,
    "canceled": STATUS_CANCELLED,
}

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_GO_ZERO_YEAR = 1


def status_for_event_type(event_type: str) -> str:
    """Map an event type to a job status; unknown types pass through verbatim."""
    raw = event_type.strip()
    return EVENT_STATUS.get(raw.lower(), raw)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Naive values are taken as UTC. Go's zero time and empty values map to None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        # fromisoformat only accepts up to microseconds before 3.11
        text = _FRACTION_RE.sub(r"\1", text)
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise DecodeError(f"Invalid timestamp: {value!r}", cause=e) from e
    else:
        raise DecodeError(f"Invalid timestamp type: {type(value).__name__}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if dt.year == _GO_ZERO_YEAR:
        return None
    return dt.astimezone(timezone.utc)


def _normalize_status(value: str) -> str:
    """Known statuses are matched case-insensitively; anything else is kept as sent."""
    raw = value.strip()
    if not raw:
        return STATUS_PENDING
    return raw.lower() if raw.lower() in KNOWN_STATUSES else raw


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        if isinstance(value, bool):
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True, slots=True)
class Job:
    id: str
    queue: str = ""
    payload: Any = None
    max_retries: int = 0
    run_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    status: str = STATUS_PENDING
    priority: str = "normal"
    idempotency_key: str = ""
    locked_by: str | None = None
    locked_at: datetime | None = None

    @property
    def is_known_status(self) -> bool:
        return self.status in KNOWN_STATUSES

    @property
    def lock_is_active(self) -> bool:
        """A lock only means something while the job is processing."""
        return bool(self.locked_by) and self.status == STATUS_PROCESSING

    @classmethod
    def from_dict(cls, data: Any) -> Job:
        if not isinstance(data, Mapping):
            raise DecodeError(f"Job record must be an object, got {type(data).__name__}")
        job_id = _as_str(_pick(data, "id", "ID")).strip()
        if not job_id:
            raise DecodeError("Job record has no id")
        locked_by = _as_str(_pick(data, "locked_by", "LockedBy")) or None
        return cls(
            id=job_id,
            queue=_as_str(_pick(data, "queue", "Queue")),
            payload=_pick(data, "payload", "Payload"),
            max_retries=_as_int(_pick(data, "max_retries", "MaxRetries")),
            run_at=parse_timestamp(_pick(data, "run_at", "RunAt")),
            created_at=parse_timestamp(_pick(data, "created_at", "CreatedAt")),
            updated_at=parse_timestamp(_pick(data, "updated_at", "UpdatedAt")),
            status=_normalize_status(_as_str(_pick(data, "status", "Status"))),
            priority=_as_str(_pick(data, "priority", "Priority"), "normal") or "normal",
            idempotency_key=_as_str(_pick(data, "idempotency_key", "IdempotencyKey")),
            locked_by=locked_by,
            locked_at=parse_timestamp(_pick(data, "locked_at", "LockedAt")),
        )


@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    type: str
    job_id: str
    queue: str
    timestamp: datetime
    payload: Any = None
    error: str | None = None
    # Top-level lock pair, only when the backend sends one.
    locked_by: str | None = None
    locked_at: datetime | None = None

    @property
    def status(self) -> str:
        return status_for_event_type(self.type)

    @classmethod
    def from_dict(cls, data: Any) -> LifecycleEvent:
        if not isinstance(data, Mapping):
            raise DecodeError(f"Event must be an object, got {type(data).__name__}")
        event_type = _as_str(data.get("type")).strip()
        job_id = _as_str(data.get("job_id")).strip()
        if not event_type:
            raise DecodeError("Event has no type")
        if not job_id:
            raise DecodeError("Event has no job_id")
        timestamp = parse_timestamp(data.get("timestamp"))
        if timestamp is None:
            raise DecodeError("Event has no timestamp")
        error = data.get("error")
        try:
            locked_at = parse_timestamp(data.get("locked_at"))
        except DecodeError:
            locked_at = None
        return cls(
            type=event_type,
            job_id=job_id,
            queue=_as_str(data.get("queue")),
            timestamp=timestamp,
            payload=data.get("payload"),
            error=_as_str(error) if error else None,
            locked_by=_as_str(data.get("locked_by")) or None,
            locked_at=locked_at,
        )
