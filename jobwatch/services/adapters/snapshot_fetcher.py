from __future__ import annotations

from jobwatch.core.jobs.models import Job
from jobwatch.core.jobs.reconciler import SnapshotFetcher
from jobwatch.services.api_client import JobQueueClient


class HttpSnapshotFetcher(SnapshotFetcher):
    """SnapshotFetcher backed by ``GET /jobs``."""

    def __init__(self, client: JobQueueClient) -> None:
        self._client = client

    async def fetch(
        self, status: str | None = None, queue: str | None = None, limit: int = 100
    ) -> list[Job]:
        return await self._client.list_jobs(status=status, queue=queue, limit=limit)
