"""Shared JSON serialization utilities for logs and response bodies."""

import json
from datetime import date, datetime
from decimal import Decimal
from functools import partial
from pathlib import Path
from typing import Any


def _serialize_known_type(obj: Any) -> tuple[bool, Any]:
    """Try to serialize by known type. Returns (handled, result)."""
    if isinstance(obj, (datetime, date)):
        return True, obj.isoformat()
    if isinstance(obj, Decimal):
        return True, float(obj)
    if isinstance(obj, Path):
        return True, str(obj)
    if isinstance(obj, bytes):
        return True, obj.decode("utf-8", errors="replace")
    return False, None


def json_serializer(obj: Any) -> Any:
    """
    Type-safe JSON serializer.

    - datetime/date -> ISO 8601 string
    - Decimal -> float
    - Path -> string
    - bytes -> UTF-8 text
    - Enums -> value
    - Everything else -> string (fallback)
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    if hasattr(obj, "value"):
        return obj.value
    return str(obj)


# Passed as ``dumps`` to aiohttp's json_response
json_dumps = partial(json.dumps, default=json_serializer)


__all__ = ["json_serializer", "json_dumps"]
