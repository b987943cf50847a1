"""REST client for the job-queue backend.

Thin wrapper over ``httpx.AsyncClient``: every failure, network or non-2xx,
comes out as ``TransportError`` and nothing is retried here. Retry policy
belongs to whoever called (usually an operator pressing refresh).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from jobwatch.core.errors import DecodeError, TransportError
from jobwatch.core.jobs.models import Job
from jobwatch.core.observability.timing import time_block

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "normal", "high")


@dataclass(frozen=True, slots=True)
class CreateJobRequest:
    queue: str
    payload: Any = None
    max_retries: int = 3
    priority: str = "normal"
    idempotency_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "queue": self.queue,
            "payload": self.payload,
            "max_retries": int(self.max_retries),
            "priority": self.priority,
        }
        if self.idempotency_key:
            body["idempotency_key"] = self.idempotency_key
        return body


@dataclass(frozen=True, slots=True)
class CreatedJob:
    job_id: str
    status: str


@dataclass(frozen=True, slots=True)
class QueueStats:
    total_jobs: int = 0
    pending_jobs: int = 0
    processing_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    cancelled_jobs: int = 0

    @property
    def active_jobs(self) -> int:
        return self.pending_jobs + self.processing_jobs

    @property
    def success_rate(self) -> float:
        """Completed share of all jobs, in percent (0 when there are no jobs)."""
        if self.total_jobs <= 0:
            return 0.0
        return round(self.completed_jobs * 100.0 / self.total_jobs, 1)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> QueueStats:
        def _n(key: str) -> int:
            try:
                return int(d.get(key) or 0)
            except (TypeError, ValueError):
                return 0

        return cls(
            total_jobs=_n("total_jobs"),
            pending_jobs=_n("pending_jobs"),
            processing_jobs=_n("processing_jobs"),
            completed_jobs=_n("completed_jobs"),
            failed_jobs=_n("failed_jobs"),
            cancelled_jobs=_n("cancelled_jobs"),
        )


class JobQueueClient:
    def __init__(
        self,
        base_url: str,
        *,
        admin_user: str = "admin",
        admin_password: str = "password",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._admin_auth = httpx.BasicAuth(admin_user, admin_password)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> JobQueueClient:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        admin: bool = False,
    ) -> Any:
        what = f"{method} {path}"
        try:
            with time_block(what, logger=logger):
                resp = await self._client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    auth=self._admin_auth if admin else httpx.USE_CLIENT_DEFAULT,
                )
        except httpx.HTTPError as e:
            raise TransportError(f"{what} failed", cause=e) from e

        if resp.is_error:
            detail = resp.text.strip()[:200]
            raise TransportError(
                f"{what} returned HTTP {resp.status_code}" + (f": {detail}" if detail else ""),
                status_code=resp.status_code,
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(
                f"{what} returned invalid JSON", cause=e, status_code=resp.status_code
            ) from e

    async def list_jobs(
        self, status: str | None = None, queue: str | None = None, limit: int = 100
    ) -> list[Job]:
        params: dict[str, Any] = {"limit": str(limit)}
        if status:
            params["status"] = status
        if queue:
            params["queue"] = queue
        data = await self._request("GET", "/jobs", params=params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise TransportError("GET /jobs returned a non-list body")
        jobs: list[Job] = []
        for item in data:
            try:
                jobs.append(Job.from_dict(item))
            except DecodeError as e:
                logger.warning("Skipping malformed job record: %s", e)
        return jobs

    async def get_job(self, job_id: str) -> Job:
        data = await self._request("GET", f"/jobs/{job_id}")
        try:
            return Job.from_dict(data)
        except DecodeError as e:
            raise TransportError(f"GET /jobs/{job_id} returned a malformed job", cause=e) from e

    async def create_job(self, request: CreateJobRequest) -> CreatedJob:
        data = await self._request("POST", "/jobs", json=request.to_dict())
        if not isinstance(data, dict) or not data.get("job_id"):
            raise TransportError("POST /jobs returned no job_id")
        return CreatedJob(job_id=str(data["job_id"]), status=str(data.get("status", "")))

    async def cancel_job(self, job_id: str) -> str:
        return await self._admin_action(job_id, "cancel")

    async def retry_job(self, job_id: str) -> str:
        return await self._admin_action(job_id, "retry")

    async def _admin_action(self, job_id: str, action: str) -> str:
        data = await self._request("POST", f"/admin/jobs/{job_id}/{action}", admin=True)
        if isinstance(data, dict):
            return str(data.get("status", ""))
        return ""

    async def health(self) -> str:
        data = await self._request("GET", "/health")
        if isinstance(data, dict):
            return str(data.get("status", "unknown"))
        return "unknown"

    async def stats(self) -> QueueStats:
        data = await self._request("GET", "/stats")
        return QueueStats.from_dict(data if isinstance(data, dict) else {})
