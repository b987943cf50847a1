"""Infrastructure services: the REST client for the job-queue backend."""

from .api_client import CreatedJob, CreateJobRequest, JobQueueClient, QueueStats

__all__ = ["CreatedJob", "CreateJobRequest", "JobQueueClient", "QueueStats"]
