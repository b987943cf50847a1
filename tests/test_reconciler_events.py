from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jobwatch.core.errors import TransportError
from jobwatch.core.events import EventBus, EventLogUpdated, RefetchRequested
from jobwatch.core.jobs import Job, LifecycleEvent, ReconciliationEngine

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def ts(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def evt(event_type: str, job_id: str, at: float, payload=None) -> LifecycleEvent:
    return LifecycleEvent(type=event_type, job_id=job_id, queue="default", timestamp=ts(at), payload=payload)


class _Fetcher:
    def __init__(self, jobs: list[Job] | None = None, error: Exception | None = None) -> None:
        self.jobs = jobs or []
        self.error = error
        self.calls: list[tuple[str | None, str | None, int]] = []

    async def fetch(self, status=None, queue=None, limit=100) -> list[Job]:
        self.calls.append((status, queue, limit))
        if self.error is not None:
            raise self.error
        return list(self.jobs)


def _engine(scheduler, fetcher=None, **kwargs) -> tuple[ReconciliationEngine, EventBus]:
    bus = EventBus()
    engine = ReconciliationEngine(
        bus, fetcher=fetcher, scheduler=scheduler, refetch_debounce_sec=0.5, **kwargs
    )
    return engine, bus


def test_event_for_known_job_updates_status_and_timestamp(scheduler) -> None:
    engine, bus = _engine(scheduler)
    engine.apply_snapshot([Job(id="1", queue="default", status="pending", updated_at=ts(0))])

    bus.publish(evt("started", "1", 5))

    rec = engine.get("1")
    assert rec is not None
    assert rec.status == "processing"
    assert rec.updated_at == ts(5)
    assert rec.queue == "default"


def test_out_of_order_event_does_not_override_newer_status(scheduler) -> None:
    engine, _ = _engine(scheduler)
    engine.apply_snapshot([Job(id="1", status="pending", updated_at=ts(0))])

    engine.apply_event(evt("succeeded", "1", 20))
    engine.apply_event(evt("started", "1", 10))

    rec = engine.get("1")
    assert rec is not None
    assert rec.status == "completed"
    assert rec.updated_at == ts(20)


def test_event_with_equal_timestamp_is_applied(scheduler) -> None:
    engine, _ = _engine(scheduler)
    engine.apply_snapshot([Job(id="1", status="processing", updated_at=ts(3))])

    engine.apply_event(evt("failed", "1", 3))

    assert engine.get("1").status == "failed"


def test_event_older_than_snapshot_record_is_ignored(scheduler) -> None:
    engine, _ = _engine(scheduler)
    engine.apply_snapshot([Job(id="1", status="completed", updated_at=ts(100))])

    engine.apply_event(evt("started", "1", 50))

    assert engine.get("1").status == "completed"
    assert len(engine.event_log()) == 1


def test_lock_fields_follow_processing_status(scheduler) -> None:
    engine, _ = _engine(scheduler)
    engine.apply_snapshot([Job(id="1", status="pending", updated_at=ts(0))])

    engine.apply_event(
        LifecycleEvent.from_dict(
            {
                "type": "started",
                "job_id": "1",
                "queue": "default",
                "timestamp": "2024-01-01T00:00:01Z",
                "locked_by": "worker-7",
                "locked_at": "2024-01-01T00:00:01Z",
            }
        )
    )
    rec = engine.get("1")
    assert rec.locked_by == "worker-7"
    assert rec.locked_at == ts(1)
    assert rec.lock_is_active

    engine.apply_event(evt("succeeded", "1", 2))
    rec = engine.get("1")
    assert rec.locked_by is None
    assert rec.locked_at is None


def test_job_payload_is_not_read_as_lock_data(scheduler) -> None:
    engine, _ = _engine(scheduler)
    payload = {"locked_by": "alice", "locked_at": "2024-01-01T00:00:01Z"}
    engine.apply_snapshot(
        [Job(id="1", status="pending", payload=payload, locked_by="worker-2", updated_at=ts(0))]
    )

    engine.apply_event(
        LifecycleEvent.from_dict(
            {
                "type": "started",
                "job_id": "1",
                "queue": "default",
                "timestamp": "2024-01-01T00:00:01Z",
                "payload": payload,
            }
        )
    )

    rec = engine.get("1")
    assert rec.status == "processing"
    assert rec.locked_by == "worker-2"
    assert rec.locked_at is None
    assert rec.payload == payload


def test_unrecognised_event_type_becomes_the_status_verbatim(scheduler, caplog) -> None:
    engine, _ = _engine(scheduler)
    engine.apply_snapshot([Job(id="1", status="pending", updated_at=ts(0))])

    with caplog.at_level(logging.INFO, logger="jobwatch.core.jobs.reconciler"):
        engine.apply_event(evt("Archived", "1", 1))

    assert engine.get("1").status == "Archived"
    assert [j.status for j in engine.view()] == ["Archived"]
    assert "unrecognised status 'Archived'" in caplog.text


def test_event_log_is_newest_first_and_capped(scheduler) -> None:
    engine, bus = _engine(scheduler, max_events=3)
    updates: list[EventLogUpdated] = []
    bus.subscribe(EventLogUpdated, updates.append)
    engine.apply_snapshot([Job(id="1", updated_at=ts(0))])

    for i in range(5):
        engine.apply_event(evt("started", "1", i + 1))

    log = engine.event_log()
    assert [e.timestamp for e in log] == [ts(5), ts(4), ts(3)]
    assert len(updates) == 5
    assert updates[-1].size == 3


def test_unknown_job_is_not_fabricated(scheduler) -> None:
    fetcher = _Fetcher()
    engine, _ = _engine(scheduler, fetcher)
    engine.apply_snapshot([Job(id="1", updated_at=ts(0))])

    engine.apply_event(evt("succeeded", "X", 1))

    assert engine.get("X") is None
    assert engine.known_ids() == {"1"}
    assert engine.event_log()[0].job_id == "X"


def test_burst_of_unknown_ids_triggers_one_refetch_per_window(scheduler) -> None:
    fetcher = _Fetcher()
    engine, bus = _engine(scheduler, fetcher)
    requested: list[RefetchRequested] = []
    bus.subscribe(RefetchRequested, requested.append)

    for i in range(5):
        engine.apply_event(evt("created", f"X{i}", i))
        scheduler.advance(0.05)

    assert len(scheduler.pending()) == 1
    scheduler.advance(0.5)
    scheduler.run_coros()

    assert len(fetcher.calls) == 1
    assert fetcher.calls[0] == (None, None, 100)
    assert requested[0].job_ids == ("X0", "X1", "X2", "X3", "X4")
    assert not engine.refetch_pending


def test_refetch_results_are_merged_as_a_snapshot(scheduler) -> None:
    fetcher = _Fetcher(jobs=[Job(id="X", status="completed", updated_at=ts(2))])
    engine, _ = _engine(scheduler, fetcher)
    engine.apply_snapshot([Job(id="1", status="pending", updated_at=ts(0))])

    engine.apply_event(evt("succeeded", "X", 2))
    scheduler.advance(1.0)
    scheduler.run_coros()

    assert engine.get("X").status == "completed"
    assert engine.get("1").status == "pending"


def test_failed_refetch_leaves_view_unchanged(scheduler) -> None:
    fetcher = _Fetcher(error=TransportError("GET /jobs failed"))
    engine, _ = _engine(scheduler, fetcher)
    engine.apply_snapshot([Job(id="1")])

    engine.apply_event(evt("succeeded", "X", 2))
    scheduler.advance(1.0)
    scheduler.run_coros()

    assert [j.id for j in engine.view()] == ["1"]
    assert len(fetcher.calls) == 1


def test_close_cancels_pending_refetch_and_detaches_from_bus(scheduler) -> None:
    fetcher = _Fetcher()
    engine, bus = _engine(scheduler, fetcher)
    bus.publish(evt("created", "X", 0))
    assert engine.refetch_pending

    engine.close()
    scheduler.advance(10.0)
    bus.publish(evt("created", "Y", 1))

    assert scheduler.coros == []
    assert fetcher.calls == []
    assert [e.job_id for e in engine.event_log()] == ["X"]
