"""Shared error types.

The goal is to make errors explicit and easy to handle at the display boundary.
Nothing here is fatal: the worst outcome of any of these is a stale view.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False)
class AppError(Exception):
    """Base error for application-level failures."""

    message: str
    cause: Exception | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.cause is None:
            return self.message
        return f"{self.message} (cause: {self.cause})"


class DomainError(AppError):
    """Domain rule violation."""


class ValidationError(AppError):
    """Invalid input or configuration."""


class IntegrationError(AppError):
    """External integration failed."""


@dataclass(eq=False)
class TransportError(IntegrationError):
    """A fetch or mutation call failed (network error or non-2xx response).

    Reported to the caller; never retried automatically.
    """

    status_code: int | None = None


class ChannelError(IntegrationError):
    """The push connection dropped. Always turned into a reconnect."""


@dataclass(eq=False)
class DecodeError(ValidationError):
    """A push message or job record could not be decoded."""

    raw: str | None = None


@dataclass(eq=False)
class ReferenceGap(DomainError):
    """A lifecycle event referenced a job id that is not known locally."""

    job_id: str = ""
