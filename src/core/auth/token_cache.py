"""
Thread-safe token cache with expiration tracking.

This module provides in-memory caching of access grants keyed by audience.
A cached grant is handed out until it comes within a refresh margin of the
expiry reported by the identity provider, so callers never receive a token
that may lapse mid-request.

Thread Safety:
    All cache operations are protected by a lock so the cache can be shared
    between the event loop and worker threads (e.g. the SQL driver thread).

Example:
    >>> cache = TokenCache()
    >>> cache.set("https://storage.azure.com/", grant)
    >>> cached = cache.get("https://storage.azure.com/")
    >>> if cached is None:
    ...     # Expired, close to expiry, or never cached; fetch a new one
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Dict, Optional

from core.types import AccessGrant

# Azure AD tokens live 60-90 minutes; refresh when fewer than 5 remain
DEFAULT_REFRESH_MARGIN = timedelta(minutes=5)


@dataclass
class CachedToken:
    """
    Access grant with acquisition timestamp.

    Attributes:
        grant: The cached token and its expiry
        acquired_at: UTC timestamp when the grant was cached
    """

    grant: AccessGrant
    acquired_at: datetime

    def is_valid(self, margin: timedelta = DEFAULT_REFRESH_MARGIN) -> bool:
        """
        Check if the grant is still usable with a safety margin.

        Returns:
            True if the grant expires more than ``margin`` from now
        """
        return not self.grant.expires_within(margin)


class TokenCache:
    """
    Thread-safe cache for audience-scoped access grants.

    Example:
        >>> cache = TokenCache(refresh_margin=timedelta(minutes=2))
        >>> cache.set("https://database.windows.net/", grant)
        >>> cache.get("https://database.windows.net/")  # grant, or None near expiry
    """

    def __init__(self, refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN):
        self.refresh_margin = refresh_margin
        self._tokens: Dict[str, CachedToken] = {}
        self._lock = threading.Lock()

    def get(self, audience: str) -> Optional[AccessGrant]:
        """
        Get cached grant if still valid.

        Returns:
            AccessGrant if cached and outside the refresh margin, else None
        """
        with self._lock:
            cached = self._tokens.get(audience)
            if cached and cached.is_valid(self.refresh_margin):
                return cached.grant
            return None

    def set(self, audience: str, grant: AccessGrant) -> None:
        """Cache a grant, replacing any previous entry for the audience."""
        with self._lock:
            self._tokens[audience] = CachedToken(
                grant=grant, acquired_at=datetime.now(timezone.utc)
            )

    def clear(self, audience: Optional[str] = None) -> None:
        """
        Clear one or all cached grants.

        Args:
            audience: Specific audience to clear. If None, clears all grants.
        """
        with self._lock:
            if audience:
                self._tokens.pop(audience, None)
            else:
                self._tokens.clear()

    def get_age(self, audience: str) -> Optional[timedelta]:
        """Get age of the cached grant for diagnostics, or None if not cached."""
        with self._lock:
            cached = self._tokens.get(audience)
            if cached:
                return datetime.now(timezone.utc) - cached.acquired_at
            return None

    def audiences(self) -> list[str]:
        with self._lock:
            return list(self._tokens)


__all__ = ["TokenCache", "CachedToken", "DEFAULT_REFRESH_MARGIN"]
