"""Composition root / DI container.

Nothing in the monitor is a global: the container builds each service once,
on first use, and owns its lifetime. ``aclose()`` tears everything down.
"""

from __future__ import annotations

import logging

from jobwatch.application.monitor import JobMonitor
from jobwatch.config import MonitorSettings
from jobwatch.core.channel import EventChannel
from jobwatch.core.events import EventBus, Subscription
from jobwatch.core.jobs import ReconciliationEngine
from jobwatch.core.observability.diagnostics import attach_diagnostics
from jobwatch.core.scheduling import AsyncioScheduler
from jobwatch.services import JobQueueClient
from jobwatch.services.adapters import HttpSnapshotFetcher

logger = logging.getLogger(__name__)


class Container:
    """Resolves monitor services. Single place to swap implementations if needed."""

    def __init__(self, settings: MonitorSettings | None = None) -> None:
        self._settings = settings or MonitorSettings()
        self._event_bus: EventBus | None = None
        self._scheduler: AsyncioScheduler | None = None
        self._api_client: JobQueueClient | None = None
        self._fetcher: HttpSnapshotFetcher | None = None
        self._channel: EventChannel | None = None
        self._engine: ReconciliationEngine | None = None
        self._monitor: JobMonitor | None = None
        self._diagnostics: list[Subscription] = []

    @property
    def settings(self) -> MonitorSettings:
        return self._settings

    @property
    def event_bus(self) -> EventBus:
        if self._event_bus is None:
            self._event_bus = EventBus()
            self._diagnostics = attach_diagnostics(self._event_bus)
        return self._event_bus

    @property
    def scheduler(self) -> AsyncioScheduler:
        if self._scheduler is None:
            self._scheduler = AsyncioScheduler()
        return self._scheduler

    @property
    def api_client(self) -> JobQueueClient:
        if self._api_client is None:
            s = self._settings
            self._api_client = JobQueueClient(
                s.api_url,
                admin_user=s.admin_user,
                admin_password=s.admin_password,
                timeout=s.request_timeout_sec,
            )
        return self._api_client

    @property
    def fetcher(self) -> HttpSnapshotFetcher:
        if self._fetcher is None:
            self._fetcher = HttpSnapshotFetcher(self.api_client)
        return self._fetcher

    @property
    def channel(self) -> EventChannel:
        if self._channel is None:
            s = self._settings
            self._channel = EventChannel(
                s.ws_url,
                self.event_bus,
                scheduler=self.scheduler,
                reconnect_delay_sec=s.reconnect_delay_sec,
                backoff=s.reconnect_backoff,
                max_delay_sec=s.reconnect_max_delay_sec,
                jitter=s.reconnect_jitter,
                open_timeout_sec=s.request_timeout_sec,
            )
        return self._channel

    @property
    def engine(self) -> ReconciliationEngine:
        if self._engine is None:
            s = self._settings
            self._engine = ReconciliationEngine(
                self.event_bus,
                fetcher=self.fetcher,
                scheduler=self.scheduler,
                refetch_debounce_sec=s.refetch_debounce_sec,
                max_events=s.event_log_size,
                fetch_limit=s.fetch_limit,
            )
        return self._engine

    @property
    def monitor(self) -> JobMonitor:
        if self._monitor is None:
            self._monitor = JobMonitor(
                self.engine,
                self.channel,
                self.fetcher,
                admin=self.api_client,
                info=self.api_client,
                fetch_limit=self._settings.fetch_limit,
            )
        return self._monitor

    async def aclose(self) -> None:
        if self._monitor is not None:
            await self._monitor.stop()
        else:
            if self._channel is not None:
                await self._channel.aclose()
            if self._engine is not None:
                self._engine.close()
        if self._scheduler is not None:
            await self._scheduler.aclose()
        if self._api_client is not None:
            await self._api_client.aclose()
        for sub in self._diagnostics:
            sub.cancel()
        self._diagnostics.clear()
        logger.debug("Container closed")
