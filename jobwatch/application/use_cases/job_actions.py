from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from jobwatch.application.ports.jobs import JobAdminPort
from jobwatch.core.errors import TransportError, ValidationError
from jobwatch.services.api_client import PRIORITIES, CreatedJob, CreateJobRequest

logger = logging.getLogger(__name__)

Refresh = Callable[[], Awaitable[object]]


@dataclass(frozen=True, slots=True)
class JobActionResult:
    job_id: str
    action: str
    status: str


async def _refresh_quietly(refresh: Refresh | None, reason: str) -> None:
    # The action already succeeded on the server; a failed reload only leaves
    # the view stale until the next refresh or push event.
    if refresh is None:
        return
    try:
        await refresh()
    except TransportError as e:
        logger.warning("Refresh after %s failed: %s", reason, e)


class _AdminJobActionUseCase:
    action = ""

    def __init__(self, admin: JobAdminPort, refresh: Refresh | None = None) -> None:
        self._admin = admin
        self._refresh = refresh

    async def _call(self, job_id: str) -> str:
        raise NotImplementedError

    async def execute(self, job_id: str) -> JobActionResult:
        job_id = (job_id or "").strip()
        if not job_id:
            raise ValidationError(f"Cannot {self.action} a job without an id")
        status = await self._call(job_id)
        logger.info("Job %s: %s -> %s", job_id, self.action, status, extra={"job_id": job_id})
        await _refresh_quietly(self._refresh, f"{self.action} of {job_id}")
        return JobActionResult(job_id=job_id, action=self.action, status=status)


class CancelJobUseCase(_AdminJobActionUseCase):
    action = "cancel"

    async def _call(self, job_id: str) -> str:
        return await self._admin.cancel_job(job_id)


class RetryJobUseCase(_AdminJobActionUseCase):
    action = "retry"

    async def _call(self, job_id: str) -> str:
        return await self._admin.retry_job(job_id)


class CreateJobUseCase:
    """Validate and submit a new job, then reload the view."""

    def __init__(self, admin: JobAdminPort, refresh: Refresh | None = None) -> None:
        self._admin = admin
        self._refresh = refresh

    async def execute(self, request: CreateJobRequest) -> CreatedJob:
        if not request.queue.strip():
            raise ValidationError("Queue name is required")
        if request.priority not in PRIORITIES:
            raise ValidationError(
                f"Invalid priority '{request.priority}'. Must be one of {list(PRIORITIES)}."
            )
        if request.max_retries < 0:
            raise ValidationError("max_retries must be >= 0")
        created = await self._admin.create_job(request)
        logger.info(
            "Created job %s on queue %s", created.job_id, request.queue, extra={"job_id": created.job_id}
        )
        await _refresh_quietly(self._refresh, f"creating {created.job_id}")
        return created
