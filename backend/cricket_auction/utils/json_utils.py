"""JSON utilities using orjson.

Usage:
    from cricket_auction.utils.json_utils import json_dumps, json_loads, ORJSONResponse

    data = json_loads('{"key": "value"}')
    json_str = json_dumps({"key": "value"})

    return ORJSONResponse(content={"ok": True})
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

import orjson
from fastapi.responses import JSONResponse

_OPTIONS = orjson.OPT_UTC_Z | orjson.OPT_NON_STR_KEYS


def _default_serializer(obj: Any) -> Any:
    """Serializer for types orjson does not handle natively."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (tuple, frozenset, set)):
        return list(obj)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def json_dumps(data: Any, *, pretty: bool = False) -> str:
    """Serialize data to a JSON string."""
    options = _OPTIONS
    if pretty:
        options |= orjson.OPT_INDENT_2

    return orjson.dumps(data, default=_default_serializer, option=options).decode("utf-8")


def json_loads(data: str | bytes) -> Any:
    """Deserialize a JSON string or bytes."""
    return orjson.loads(data)


class ORJSONResponse(JSONResponse):
    """FastAPI response class using orjson for serialization."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return orjson.dumps(
            content,
            default=_default_serializer,
            option=_OPTIONS,
        )
