from __future__ import annotations

from datetime import datetime, timezone

import pytest

from jobwatch.core.errors import DecodeError
from jobwatch.core.jobs.models import Job, LifecycleEvent, parse_timestamp, status_for_event_type


def test_job_from_snake_case_record() -> None:
    job = Job.from_dict(
        {
            "id": "j-1",
            "queue": "emails",
            "payload": {"to": "a@b.c"},
            "max_retries": 5,
            "run_at": "2024-05-01T10:00:00Z",
            "created_at": "2024-05-01T09:59:59.123456789Z",
            "updated_at": "2024-05-01T10:00:01+02:00",
            "status": "processing",
            "priority": "high",
            "idempotency_key": "k-1",
            "locked_by": "worker-3",
            "locked_at": "2024-05-01T10:00:00Z",
        }
    )

    assert job.id == "j-1"
    assert job.payload == {"to": "a@b.c"}
    assert job.max_retries == 5
    assert job.created_at == datetime(2024, 5, 1, 9, 59, 59, 123456, tzinfo=timezone.utc)
    assert job.updated_at == datetime(2024, 5, 1, 8, 0, 1, tzinfo=timezone.utc)
    assert job.priority == "high"
    assert job.lock_is_active


def test_job_from_go_field_names() -> None:
    job = Job.from_dict(
        {
            "ID": "j-2",
            "Queue": "reports",
            "MaxRetries": 2,
            "Status": "pending",
            "CreatedAt": "2024-05-01T10:00:00Z",
            "LockedBy": "",
            "LockedAt": None,
        }
    )

    assert job.id == "j-2"
    assert job.queue == "reports"
    assert job.max_retries == 2
    assert job.locked_by is None
    assert job.locked_at is None


def test_unknown_status_is_kept_verbatim() -> None:
    job = Job.from_dict({"id": "x", "status": "paused"})

    assert job.status == "paused"
    assert not job.is_known_status


def test_status_case_is_normalised_only_for_known_values() -> None:
    assert Job.from_dict({"id": "x", "status": "COMPLETED"}).status == "completed"
    assert Job.from_dict({"id": "x", "status": "OnHold"}).status == "OnHold"
    assert Job.from_dict({"id": "x", "status": "  "}).status == "pending"


def test_stale_lock_is_informational_only() -> None:
    job = Job.from_dict({"id": "x", "status": "completed", "locked_by": "worker-1"})

    assert job.locked_by == "worker-1"
    assert not job.lock_is_active


def test_job_without_id_is_rejected() -> None:
    with pytest.raises(DecodeError):
        Job.from_dict({"queue": "q"})
    with pytest.raises(DecodeError):
        Job.from_dict(["not", "a", "dict"])


def test_go_zero_time_and_naive_timestamps() -> None:
    assert parse_timestamp("0001-01-01T00:00:00Z") is None
    assert parse_timestamp("") is None
    assert parse_timestamp("2024-01-01T00:00:00") == datetime(2024, 1, 1, tzinfo=timezone.utc)
    with pytest.raises(DecodeError):
        parse_timestamp("yesterday")


@pytest.mark.parametrize(
    ("event_type", "status"),
    [
        ("created", "pending"),
        ("started", "processing"),
        ("succeeded", "completed"),
        ("failed", "failed"),
        ("canceled", "cancelled"),
        ("Completed", "completed"),
        ("archived", "archived"),
        ("Archived", "Archived"),
    ],
)
def test_event_type_maps_to_status(event_type: str, status: str) -> None:
    assert status_for_event_type(event_type) == status


def test_event_requires_type_job_and_timestamp() -> None:
    ok = LifecycleEvent.from_dict(
        {"type": "started", "job_id": "1", "queue": "q", "timestamp": "2024-01-01T00:00:00Z"}
    )
    assert ok.status == "processing"
    assert ok.error is None

    for broken in (
        {"job_id": "1", "timestamp": "2024-01-01T00:00:00Z"},
        {"type": "started", "timestamp": "2024-01-01T00:00:00Z"},
        {"type": "started", "job_id": "1"},
    ):
        with pytest.raises(DecodeError):
            LifecycleEvent.from_dict(broken)


def test_event_lock_fields_are_top_level_only() -> None:
    base = {"type": "started", "job_id": "1", "timestamp": "2024-01-01T00:00:00Z"}

    from_payload = LifecycleEvent.from_dict({**base, "payload": {"locked_by": "alice"}})
    explicit = LifecycleEvent.from_dict({**base, "locked_by": "w-1", "locked_at": "soon"})

    assert from_payload.locked_by is None
    assert explicit.locked_by == "w-1"
    assert explicit.locked_at is None
