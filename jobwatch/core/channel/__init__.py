"""Push channel: a self-healing WebSocket feed of job lifecycle events."""

from .codec import decode_event
from .event_channel import ChannelState, EventChannel

__all__ = ["ChannelState", "EventChannel", "decode_event"]
