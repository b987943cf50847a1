"""
Entry point for the headless job-queue monitor.

Run: python main.py
Settings come from JOBWATCH_* environment variables, or a JSON file named by
JOBWATCH_CONFIG. The view is logged on every change; a real display layer would
subscribe to the same bus events instead.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path

from jobwatch.application.container import Container
from jobwatch.config import load_settings
from jobwatch.core.errors import TransportError
from jobwatch.core.events import JobsViewChanged
from jobwatch.core.observability.logging_config import setup_logging

logger = logging.getLogger("jobwatch")


def _log_view(e: JobsViewChanged) -> None:
    counts: dict[str, int] = {}
    for job in e.jobs:
        counts[job.status] = counts.get(job.status, 0) + 1
    summary = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "empty"
    logger.info("View: %d of %d jobs (%s)", len(e.jobs), e.total, summary)


async def run() -> None:
    config_path = os.getenv("JOBWATCH_CONFIG")
    settings = load_settings(Path(config_path) if config_path else None)
    container = Container(settings)
    container.event_bus.subscribe(JobsViewChanged, _log_view)
    monitor = container.monitor
    try:
        try:
            await monitor.start()
        except TransportError as e:
            # Keep running: push events and a later refresh can still fill the view.
            logger.error("Initial job fetch failed: %s", e)
        dashboard = await monitor.load_dashboard()
        logger.info("Backend health: %s", dashboard.health)
        await asyncio.Event().wait()
    finally:
        await container.aclose()


def main() -> None:
    setup_logging()
    asyncio.run(run())


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
