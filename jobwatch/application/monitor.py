from __future__ import annotations

import logging

from jobwatch.application.ports.jobs import JobAdminPort, QueueInfoPort
from jobwatch.application.use_cases import (
    CancelJobUseCase,
    CreateJobUseCase,
    DashboardState,
    JobActionResult,
    LoadDashboardUseCase,
    RetryJobUseCase,
)
from jobwatch.core.channel import ChannelState, EventChannel
from jobwatch.core.jobs import Job, JobFilter, LifecycleEvent, ReconciliationEngine, SnapshotFetcher
from jobwatch.services.api_client import CreatedJob, CreateJobRequest

logger = logging.getLogger(__name__)


class JobMonitor:
    """One live monitoring session: the surface the display layer talks to.

    ``start()`` opens the push channel and loads the first snapshot; from then
    on the engine keeps the view current. Reads (``view``, ``event_log``,
    ``connection_state``) are cheap and synchronous.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        channel: EventChannel,
        fetcher: SnapshotFetcher,
        admin: JobAdminPort,
        info: QueueInfoPort,
        *,
        fetch_limit: int = 100,
    ) -> None:
        self._engine = engine
        self._channel = channel
        self._fetcher = fetcher
        self._fetch_limit = fetch_limit
        self._cancel_uc = CancelJobUseCase(admin, refresh=self.refresh)
        self._retry_uc = RetryJobUseCase(admin, refresh=self.refresh)
        self._create_uc = CreateJobUseCase(admin, refresh=self.refresh)
        self._dashboard_uc = LoadDashboardUseCase(info)
        self._started = False

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the push channel, then load the initial snapshot.

        The channel starts first so no event is missed while the fetch is in
        flight. A failed initial fetch raises TransportError; the channel
        stays up and a later ``refresh()`` can recover.
        """
        if self._started:
            return
        self._started = True
        self._channel.start()
        await self.refresh()

    async def stop(self) -> None:
        await self._channel.aclose()
        self._engine.close()
        self._started = False

    async def refresh(self) -> list[Job]:
        """Fetch with the active filter and merge the result into the view."""
        f = self._engine.filter
        jobs = await self._fetcher.fetch(status=f.status, queue=f.queue, limit=self._fetch_limit)
        self._engine.apply_snapshot(jobs)
        return self._engine.view()

    async def set_filter(
        self, status: str | None = None, queue: str | None = None, *, refresh: bool = True
    ) -> list[Job]:
        self._engine.set_filter(JobFilter.of(status, queue))
        if refresh:
            return await self.refresh()
        return self._engine.view()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def engine(self) -> ReconciliationEngine:
        return self._engine

    @property
    def connection_state(self) -> ChannelState:
        return self._channel.state

    def view(self) -> list[Job]:
        return self._engine.view()

    def event_log(self) -> list[LifecycleEvent]:
        return self._engine.event_log()

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def cancel_job(self, job_id: str) -> JobActionResult:
        return await self._cancel_uc.execute(job_id)

    async def retry_job(self, job_id: str) -> JobActionResult:
        return await self._retry_uc.execute(job_id)

    async def create_job(self, request: CreateJobRequest) -> CreatedJob:
        return await self._create_uc.execute(request)

    async def load_dashboard(self) -> DashboardState:
        return await self._dashboard_uc.execute()
