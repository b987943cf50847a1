"""Monitor configuration and defaults.

Settings are a frozen dataclass so one instance can be shared by every component
the container builds. Values come from defaults, a JSON file or ``JOBWATCH_*``
environment variables; bad values fall back to defaults instead of failing.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Base paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Backend endpoints
DEFAULT_API_URL = "http://localhost:8080/api/v1"
DEFAULT_WS_URL = "ws://localhost:8080/api/v1/ws"

# Push channel
DEFAULT_RECONNECT_DELAY_SEC = 3.0
DEFAULT_RECONNECT_MAX_DELAY_SEC = 30.0

# Reconciliation
DEFAULT_FETCH_LIMIT = 100
DEFAULT_REFETCH_DEBOUNCE_SEC = 0.5
DEFAULT_EVENT_LOG_SIZE = 200

ENV_PREFIX = "JOBWATCH_"


def _as_int(value: Any, default: int) -> int:
    try:
        if isinstance(value, bool):
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        if isinstance(value, bool):
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_str(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _env_values(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Raw ``JOBWATCH_<FIELD>`` values that are actually set, keyed by field name."""
    env = os.environ if environ is None else environ
    raw: dict[str, str] = {}
    for f in fields(MonitorSettings):
        key = ENV_PREFIX + f.name.upper()
        if key in env:
            raw[f.name] = env[key]
    return raw


@dataclass(frozen=True, slots=True)
class MonitorSettings:
    api_url: str = DEFAULT_API_URL
    ws_url: str = DEFAULT_WS_URL
    admin_user: str = "admin"
    admin_password: str = "password"
    request_timeout_sec: float = 10.0
    fetch_limit: int = DEFAULT_FETCH_LIMIT
    reconnect_delay_sec: float = DEFAULT_RECONNECT_DELAY_SEC
    reconnect_backoff: float = 1.0  # 1.0 = fixed delay
    reconnect_max_delay_sec: float = DEFAULT_RECONNECT_MAX_DELAY_SEC
    reconnect_jitter: float = 0.0
    refetch_debounce_sec: float = DEFAULT_REFETCH_DEBOUNCE_SEC
    event_log_size: int = DEFAULT_EVENT_LOG_SIZE

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> MonitorSettings:
        """Build settings from a loose mapping; unknown keys are ignored."""
        base = cls()
        return cls(
            api_url=_as_str(d.get("api_url"), base.api_url).rstrip("/"),
            ws_url=_as_str(d.get("ws_url"), base.ws_url),
            admin_user=_as_str(d.get("admin_user"), base.admin_user),
            admin_password=_as_str(d.get("admin_password"), base.admin_password),
            request_timeout_sec=max(
                0.1, _as_float(d.get("request_timeout_sec"), base.request_timeout_sec)
            ),
            fetch_limit=max(1, _as_int(d.get("fetch_limit"), base.fetch_limit)),
            reconnect_delay_sec=max(
                0.0, _as_float(d.get("reconnect_delay_sec"), base.reconnect_delay_sec)
            ),
            reconnect_backoff=max(1.0, _as_float(d.get("reconnect_backoff"), base.reconnect_backoff)),
            reconnect_max_delay_sec=max(
                0.0, _as_float(d.get("reconnect_max_delay_sec"), base.reconnect_max_delay_sec)
            ),
            reconnect_jitter=min(
                0.9, max(0.0, _as_float(d.get("reconnect_jitter"), base.reconnect_jitter))
            ),
            refetch_debounce_sec=max(
                0.0, _as_float(d.get("refetch_debounce_sec"), base.refetch_debounce_sec)
            ),
            event_log_size=max(1, _as_int(d.get("event_log_size"), base.event_log_size)),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> MonitorSettings:
        """Read ``JOBWATCH_<FIELD>`` variables, e.g. ``JOBWATCH_API_URL``."""
        return cls.from_dict(_env_values(environ))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def with_overrides(self, **changes: Any) -> MonitorSettings:
        return replace(self, **changes)


def load_settings(
    path: Path | None = None, environ: Mapping[str, str] | None = None
) -> MonitorSettings:
    """Load settings from a JSON file, then apply environment overrides.

    A missing or unreadable file is not an error: defaults are used.
    """

    data: dict[str, Any] = {}
    if path is not None and path.exists():
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                data = loaded
            else:
                logger.warning("Ignoring settings file %s: expected a JSON object", path)
        except (OSError, ValueError):
            logger.warning("Failed to read settings file %s; using defaults", path, exc_info=True)

    # Every variable that is set wins over the file, even one equal to the default.
    data.update(_env_values(environ))
    return MonitorSettings.from_dict(data)
