from __future__ import annotations

import logging
from dataclasses import dataclass

from jobwatch.application.ports.jobs import QueueInfoPort
from jobwatch.core.errors import TransportError
from jobwatch.services.api_client import QueueStats

logger = logging.getLogger(__name__)

HEALTH_UNHEALTHY = "unhealthy"


@dataclass(frozen=True, slots=True)
class DashboardState:
    health: str
    stats: QueueStats | None = None
    error: str | None = None


class LoadDashboardUseCase:
    """Backend health plus queue counters.

    Never raises on transport failures: an unreachable backend is reported as
    ``unhealthy`` and missing stats as ``error``.
    """

    def __init__(self, info: QueueInfoPort) -> None:
        self._info = info

    async def execute(self) -> DashboardState:
        try:
            health = await self._info.health()
        except TransportError as e:
            logger.warning("Health check failed: %s", e)
            health = HEALTH_UNHEALTHY

        try:
            stats = await self._info.stats()
        except TransportError as e:
            logger.warning("Failed to load queue stats: %s", e)
            return DashboardState(health=health, stats=None, error=str(e))
        return DashboardState(health=health, stats=stats)
