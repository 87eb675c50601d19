"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_service: ContextVar[str] = ContextVar("service", default="")
_request_id: ContextVar[str] = ContextVar("request_id", default="")
_route: ContextVar[str] = ContextVar("route", default="")


def set_log_context(
    service: Optional[str] = None,
    request_id: Optional[str] = None,
    route: Optional[str] = None,
) -> None:
    if service is not None:
        _service.set(service)
    if request_id is not None:
        _request_id.set(request_id)
    if route is not None:
        _route.set(route)


def get_log_context() -> Dict[str, str]:
    return {
        "service": _service.get(),
        "request_id": _request_id.get(),
        "route": _route.get(),
    }


def clear_log_context() -> None:
    _service.set("")
    _request_id.set("")
    _route.set("")
