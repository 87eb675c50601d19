"""
Core types and protocols used across modules.

This module provides base types, enums, and protocol definitions that are
shared by the public API and the private processor so both services classify
errors and obtain tokens the same way.
"""

from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Protocol


class ErrorCategory(Enum):
    """
    Classification of error types for response mapping.

    Categories:
        VALIDATION: Caller sent an incomplete or malformed request (HTTP 400)
        AUTH: Identity could not be resolved or a token was refused
        DEPENDENCY: An external service rejected or timed out the operation
        CONFIGURATION: A required setting is absent from the environment
        UNKNOWN: Unclassified errors
    """

    VALIDATION = "validation"
    AUTH = "auth"
    DEPENDENCY = "dependency"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AccessGrant:
    """
    Bearer token scoped to a single audience.

    Attributes:
        token: Opaque access token, usable as an Authorization header value
        expires_at: UTC expiry reported by the identity provider
    """

    token: str
    expires_at: datetime

    @property
    def expires_on(self) -> int:
        """Expiry as a POSIX timestamp (the Azure SDK AccessToken format)."""
        return int(self.expires_at.timestamp())

    def expires_within(self, margin: timedelta) -> bool:
        return datetime.now(timezone.utc) + margin >= self.expires_at

    def __repr__(self) -> str:
        return f"AccessGrant(token=<redacted>, expires_at={self.expires_at.isoformat()})"


class TokenProvider(Protocol):
    """
    Protocol for audience-scoped token providers.

    Implementations return bearer tokens for Azure resource audiences such as
    storage, SQL Database or management.
    """

    async def acquire_token(self, audience: str) -> AccessGrant:
        """
        Get an access grant for the specified audience.

        Raises:
            AuthenticationError: If the identity cannot be resolved or the
                audience is rejected
        """
        ...

    def clear_cache(self, audience: str | None = None) -> None:
        ...


__all__ = [
    "AccessGrant",
    "ErrorCategory",
    "TokenProvider",
]
