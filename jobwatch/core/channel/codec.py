from __future__ import annotations

import json

from jobwatch.core.errors import DecodeError
from jobwatch.core.jobs.models import LifecycleEvent

_MAX_RAW_IN_ERROR = 200


def decode_event(raw: str | bytes) -> LifecycleEvent:
    """Decode one push message into a LifecycleEvent or raise DecodeError."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            preview = repr(bytes(raw[:_MAX_RAW_IN_ERROR]))
            raise DecodeError("Event is not valid UTF-8", cause=e, raw=preview) from e
    else:
        text = raw
    try:
        data = json.loads(text)
    except ValueError as e:
        raise DecodeError("Event is not valid JSON", cause=e, raw=text[:_MAX_RAW_IN_ERROR]) from e
    try:
        return LifecycleEvent.from_dict(data)
    except DecodeError as e:
        raise DecodeError(e.message, cause=e.cause, raw=text[:_MAX_RAW_IN_ERROR]) from e
