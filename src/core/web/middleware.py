"""
aiohttp middlewares shared by the public API and the private processor.

- request context: request id, log context, access log line, metrics
- error mapping: any failure becomes the uniform error envelope; the full
  exception is always logged server-side
"""

import logging
import time
import uuid

from aiohttp import web

from core.errors.exceptions import TopologyError, wrap_exception
from core.logging.context import set_log_context
from core.logging.utilities import log_exception, log_with_context
from core.metrics import http_request_duration, http_requests_counter
from core.web.envelope import error_response, error_response_for

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _route_label(request: web.Request) -> str:
    """Route template for metric labels, bounded to the registered routes."""
    route = request.match_info.route
    resource = route.resource if route is not None else None
    if resource is None:
        return "unmatched"
    return resource.canonical


def request_context_middleware(service: str):
    """Assign a request id, populate log context and record metrics."""

    @web.middleware
    async def middleware(request: web.Request, handler):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        set_log_context(service=service, request_id=request_id, route=request.path)
        route = _route_label(request)
        start = time.perf_counter()
        status = 500
        try:
            response = await handler(request)
            status = response.status
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except web.HTTPException as e:
            status = e.status
            raise
        finally:
            elapsed = time.perf_counter() - start
            http_requests_counter.labels(service=service, route=route, status=str(status)).inc()
            http_request_duration.labels(service=service, route=route).observe(elapsed)
            log_with_context(
                logger,
                logging.INFO,
                f"{request.method} {request.path} {status}",
                http_method=request.method,
                http_path=request.path,
                http_status=status,
                duration_ms=round(elapsed * 1000, 2),
            )

    return middleware


def error_middleware(sanitize_errors: bool = False):
    """
    Convert exceptions into the error envelope.

    TopologyError subclasses carry their own status (400 for validation,
    500 otherwise). Unexpected exceptions are wrapped and reported as 500.
    aiohttp HTTP errors (404, 405, ...) keep their status.
    """

    @web.middleware
    async def middleware(request: web.Request, handler):
        try:
            return await handler(request)
        except web.HTTPException as e:
            if e.status < 400:
                raise
            return error_response(e.reason, http_status=e.status)
        except TopologyError as e:
            level = logging.WARNING if e.is_client_error else logging.ERROR
            log_exception(
                logger,
                e,
                f"Request failed: {request.method} {request.path}",
                level=level,
                include_traceback=not e.is_client_error,
            )
            return error_response_for(e, sanitized=sanitize_errors)
        except Exception as e:
            log_exception(logger, e, f"Unhandled error: {request.method} {request.path}")
            return error_response_for(wrap_exception(e), sanitized=sanitize_errors)

    return middleware


def build_middlewares(service: str, sanitize_errors: bool = False) -> list:
    # Outermost first: the context middleware sees the final status
    return [request_context_middleware(service), error_middleware(sanitize_errors)]
