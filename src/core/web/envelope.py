"""
JSON response envelope shared by both services.

Every body carries a boolean ``success``; ``error`` is present exactly when
``success`` is false.
"""

from typing import Any

from aiohttp import web

from core.errors.exceptions import TopologyError, client_message
from core.utils.json_serializers import json_dumps


def success_response(message: str | None = None, http_status: int = 200, **fields: Any) -> web.Response:
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    fields.pop("error", None)
    body.update(fields)
    return web.json_response(body, status=http_status, dumps=json_dumps)


def error_response(error: str, http_status: int = 500, **fields: Any) -> web.Response:
    body: dict[str, Any] = {"success": False, "error": error}
    body.update({k: v for k, v in fields.items() if k not in ("success", "error")})
    return web.json_response(body, status=http_status, dumps=json_dumps)


def error_response_for(exc: TopologyError, sanitized: bool = False, **fields: Any) -> web.Response:
    """Map a typed error to its status code and client-facing message."""
    return error_response(
        client_message(exc, sanitized=sanitized), http_status=exc.http_status, **fields
    )
