"""HTTP plumbing shared by both services: envelope helpers and middlewares."""

from core.web.envelope import error_response, error_response_for, success_response
from core.web.middleware import (
    REQUEST_ID_HEADER,
    build_middlewares,
    error_middleware,
    request_context_middleware,
)

__all__ = [
    "success_response",
    "error_response",
    "error_response_for",
    "build_middlewares",
    "error_middleware",
    "request_context_middleware",
    "REQUEST_ID_HEADER",
]
