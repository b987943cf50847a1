"""Application ports for the job-queue backend.

Use cases depend on these interfaces, not on the httpx client directly.
"""

from __future__ import annotations

from typing import Protocol

from jobwatch.services.api_client import CreatedJob, CreateJobRequest, QueueStats


class JobAdminPort(Protocol):
    async def create_job(self, request: CreateJobRequest) -> CreatedJob: ...

    async def cancel_job(self, job_id: str) -> str: ...

    async def retry_job(self, job_id: str) -> str: ...


class QueueInfoPort(Protocol):
    async def health(self) -> str:
        """Backend health string, e.g. "healthy"."""

    async def stats(self) -> QueueStats: ...
