"""Lightweight in-process event bus.

The goal is to decouple the reconciliation engine from the display layer. The
push channel publishes lifecycle events, the engine publishes view changes, and
the display layer subscribes.
"""

from .event_bus import EventBus, Subscription
from .monitor_events import (
    ChannelStateChanged,
    EventDecodeFailed,
    EventLogUpdated,
    JobsViewChanged,
    RefetchRequested,
)

__all__ = [
    "EventBus",
    "Subscription",
    "ChannelStateChanged",
    "EventDecodeFailed",
    "EventLogUpdated",
    "JobsViewChanged",
    "RefetchRequested",
]
