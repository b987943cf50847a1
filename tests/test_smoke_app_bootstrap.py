from __future__ import annotations

import asyncio
import logging

from jobwatch.application.container import Container
from jobwatch.config import MonitorSettings
from jobwatch.core.channel import ChannelState
from jobwatch.core.events import JobsViewChanged
from jobwatch.core.jobs import Job


def test_logging_setup_imports() -> None:
    from jobwatch.core.observability.logging_config import setup_logging

    setup_logging(level="INFO", log_to_file=False)
    logging.getLogger(__name__).info("smoke")


def test_container_wires_one_engine_to_one_bus() -> None:
    async def scenario() -> None:
        container = Container(MonitorSettings(fetch_limit=7, event_log_size=3))
        monitor = container.monitor
        assert monitor is container.monitor
        assert monitor.engine is container.engine
        assert monitor.connection_state is ChannelState.DISCONNECTED

        seen: list[int] = []
        container.event_bus.subscribe(JobsViewChanged, lambda e: seen.append(e.total))
        container.engine.apply_snapshot([Job(id="1", status="pending")])
        assert seen == [1]

        await container.aclose()
        assert monitor.connection_state is ChannelState.CLOSED

    asyncio.run(scenario())
