"""Use cases (application services)."""

from .job_actions import CancelJobUseCase, CreateJobUseCase, JobActionResult, RetryJobUseCase
from .load_dashboard import DashboardState, LoadDashboardUseCase

__all__ = [
    "CancelJobUseCase",
    "CreateJobUseCase",
    "DashboardState",
    "JobActionResult",
    "LoadDashboardUseCase",
    "RetryJobUseCase",
]
