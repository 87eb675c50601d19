"""
Shared plumbing for external service clients.

Every client is built from ``(endpoint, credential provider)``. Construction
never touches the network; the first operation is where failures surface.
Operations run inside ``dependency_call`` so that SDK, driver and transport
exceptions reach the request layer as typed errors:

- authentication failures stay (or become) AuthenticationError
- everything else becomes DependencyError tagged with the dependency name
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

from core.errors.exceptions import (
    AuthenticationError,
    DependencyError,
    ErrorCategory,
    TopologyError,
    wrap_exception,
)
from core.logging.context_managers import OperationContext, log_operation
from core.metrics import dependency_errors_counter
from core.types import TokenProvider

logger = logging.getLogger(__name__)


class ServiceClient(Protocol):
    """A capability bound to one endpoint and one credential provider."""

    capability: str
    dependency: str

    @classmethod
    def with_credential(
        cls, endpoint: str, provider: TokenProvider, **options: Any
    ) -> "ServiceClient":
        ...


def to_dependency_error(exc: Exception, dependency: str) -> TopologyError:
    """Map an exception raised while talking to ``dependency``."""
    if isinstance(exc, TopologyError):
        return exc

    wrapped = wrap_exception(exc, dependency=dependency)
    if wrapped.category == ErrorCategory.AUTH:
        return wrapped
    if isinstance(wrapped, DependencyError):
        return wrapped
    return DependencyError(
        wrapped.message, dependency=dependency, cause=exc, context=wrapped.context
    )


@asynccontextmanager
async def dependency_call(
    dependency: str,
    operation: str,
    **context: Any,
) -> AsyncIterator[OperationContext]:
    """
    Time, log and classify one call to an external service.

    Example:
        async with dependency_call("blob", "list_containers", endpoint=url):
            names = [c.name async for c in service.list_containers()]
    """
    with log_operation(
        logger, f"{dependency}.{operation}", dependency=dependency, **context
    ) as op:
        try:
            yield op
        except Exception as e:
            error = to_dependency_error(e, dependency)
            if not isinstance(error, AuthenticationError):
                dependency_errors_counter.labels(dependency=dependency).inc()
            if error is e:
                raise
            raise error from e
