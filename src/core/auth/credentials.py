"""
Azure credential provider for audience-scoped access tokens.

This module provides one process-wide provider that both services inject into
their request handlers. It resolves an Azure identity (managed identity in
deployed environments, a service principal or the Azure CLI elsewhere) and
hands out bearer tokens per resource audience.

Supported Authentication Methods:
    - Managed Identity: system-assigned, or user-assigned via client ID
    - Service Principal (Secret): client ID/secret/tenant
    - Azure CLI: the developer's ``az login`` session
    - Default Azure Credential: azure-identity's credential chain
      (environment, workload identity, managed identity, CLI, ...)

Caching:
    Grants are cached per audience in TokenCache and refreshed only when they
    come within the refresh margin of expiry. Concurrent requests for the same
    audience share a single fetch.

The provider also satisfies the Azure SDK ``AsyncTokenCredential`` protocol,
so SDK clients built from it (Key Vault, Blob Storage) read from the same
cache instead of hitting the identity endpoint on every call.

Example:
    >>> provider = AzureCredentialProvider(auth_mode="managed_identity")
    >>> grant = await provider.acquire_token(DATABASE_RESOURCE)
    >>> headers = {"Authorization": f"Bearer {grant.token}"}
"""

import asyncio
import logging
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from azure.core.credentials import AccessToken
from azure.identity.aio import (
    AzureCliCredential,
    ClientSecretCredential,
    DefaultAzureCredential,
    ManagedIdentityCredential,
)

from core.auth.token_cache import DEFAULT_REFRESH_MARGIN, TokenCache
from core.errors.exceptions import AuthenticationError
from core.metrics import token_requests_counter
from core.types import AccessGrant

logger = logging.getLogger(__name__)


# Azure resource audiences
STORAGE_RESOURCE = "https://storage.azure.com/"
DATABASE_RESOURCE = "https://database.windows.net/"
MANAGEMENT_RESOURCE = "https://management.azure.com/"
KEYVAULT_RESOURCE = "https://vault.azure.net"

AUTH_MODES = ("managed_identity", "spn_secret", "cli", "default")

_ALLOWED_AUDIENCE_SCHEMES = ("https", "api")
_DEFAULT_SCOPE_SUFFIX = "/.default"


def normalize_audience(audience: str) -> str:
    """Cache key for an audience; trailing slashes are not significant."""
    return audience.strip().rstrip("/")


def audience_to_scope(audience: str) -> str:
    """Convert a resource audience to its ``.default`` OAuth scope."""
    return normalize_audience(audience) + _DEFAULT_SCOPE_SUFFIX


def scope_to_audience(scope: str) -> str:
    """Inverse of audience_to_scope, used when SDK clients ask for scopes."""
    if scope.endswith(_DEFAULT_SCOPE_SUFFIX):
        scope = scope[: -len(_DEFAULT_SCOPE_SUFFIX)]
    return normalize_audience(scope)


class AzureCredentialProvider:
    """
    Unified Azure credential provider with per-audience token caching.

    Thread Safety:
        The TokenCache is lock-protected. Token fetches are serialized per
        audience with an asyncio.Lock, so simultaneous cache misses on one
        event loop produce a single identity-provider call.

    Attributes:
        auth_mode: One of "managed_identity", "spn_secret", "cli", "default"
        managed_identity_client_id: Client ID of a user-assigned identity
        client_id: Service principal client ID
        client_secret: Service principal secret
        tenant_id: Azure AD tenant ID
    """

    def __init__(
        self,
        auth_mode: Optional[str] = None,
        managed_identity_client_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        tenant_id: Optional[str] = None,
        cache: Optional[TokenCache] = None,
        refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
    ):
        """
        Initialize credential provider.

        Args:
            auth_mode: Explicit authentication mode. When omitted, a fully
                configured service principal wins, otherwise the
                DefaultAzureCredential chain is used.
            managed_identity_client_id: User-assigned managed identity client ID
            client_id: Azure AD client ID (for SPN)
            client_secret: Client secret (for SPN)
            tenant_id: Azure AD tenant ID
            cache: Optional TokenCache instance (creates new if None)
            refresh_margin: How long before expiry a cached grant is refreshed

        Raises:
            AuthenticationError: If auth_mode is not a known mode
        """
        self._cache = cache or TokenCache(refresh_margin=refresh_margin)
        self._credential: Any = None
        self._fetch_locks: Dict[str, asyncio.Lock] = {}

        self.managed_identity_client_id = managed_identity_client_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant_id = tenant_id

        if auth_mode and auth_mode not in AUTH_MODES:
            raise AuthenticationError(
                f"Unknown auth mode '{auth_mode}'. Expected one of: {', '.join(AUTH_MODES)}"
            )
        self.auth_mode = auth_mode or self._infer_auth_mode()

    @classmethod
    def from_config(cls, config) -> "AzureCredentialProvider":
        """Build a provider from a ServiceConfig."""
        return cls(
            auth_mode=config.auth_mode,
            managed_identity_client_id=config.managed_identity_client_id,
            client_id=config.client_id,
            client_secret=config.client_secret,
            tenant_id=config.tenant_id,
            refresh_margin=timedelta(seconds=config.token_refresh_margin_seconds),
        )

    @property
    def has_spn_credentials(self) -> bool:
        return all([self.client_id, self.client_secret, self.tenant_id])

    def _infer_auth_mode(self) -> str:
        if self.has_spn_credentials:
            return "spn_secret"
        return "default"

    def _get_azure_credential(self):
        """
        Get or create the azure-identity credential for the configured mode.

        Construction does not touch the network; failures to resolve an
        identity surface on the first get_token call.

        Raises:
            AuthenticationError: If the configuration for the mode is incomplete
        """
        if self._credential is not None:
            return self._credential

        if self.auth_mode == "managed_identity":
            logger.info(
                "Using managed identity authentication",
                extra={"auth_mode": self.auth_mode},
            )
            if self.managed_identity_client_id:
                self._credential = ManagedIdentityCredential(
                    client_id=self.managed_identity_client_id
                )
            else:
                self._credential = ManagedIdentityCredential()

        elif self.auth_mode == "spn_secret":
            if not self.has_spn_credentials:
                raise AuthenticationError(
                    "Service principal authentication requires AZURE_CLIENT_ID, "
                    "AZURE_CLIENT_SECRET and AZURE_TENANT_ID"
                )
            logger.info(
                "Using client secret Service Principal authentication",
                extra={"auth_mode": self.auth_mode},
            )
            self._credential = ClientSecretCredential(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                client_secret=self.client_secret,
            )

        elif self.auth_mode == "cli":
            logger.info("Using Azure CLI authentication", extra={"auth_mode": self.auth_mode})
            self._credential = AzureCliCredential(tenant_id=self.tenant_id)

        else:
            logger.info(
                "Using DefaultAzureCredential (managed identity, env vars, etc.)",
                extra={"auth_mode": self.auth_mode},
            )
            self._credential = DefaultAzureCredential(
                managed_identity_client_id=self.managed_identity_client_id
            )

        return self._credential

    @staticmethod
    def _validate_audience(audience: str) -> str:
        if not audience or not audience.strip():
            raise AuthenticationError("Token audience must be a non-empty resource URI")

        parsed = urlparse(audience.strip())
        if parsed.scheme not in _ALLOWED_AUDIENCE_SCHEMES or not parsed.netloc:
            raise AuthenticationError(
                f"Token audience '{audience}' is not a recognized resource URI"
            )
        return normalize_audience(audience)

    async def _fetch_grant(self, audience: str) -> AccessGrant:
        credential = self._get_azure_credential()
        try:
            access_token: AccessToken = await credential.get_token(audience_to_scope(audience))
        except Exception as e:
            raise AuthenticationError(
                f"Failed to acquire token for {audience}: {e}",
                cause=e,
                context={"audience": audience, "auth_mode": self.auth_mode},
            ) from e

        return AccessGrant(
            token=access_token.token,
            expires_at=datetime.fromtimestamp(access_token.expires_on, tz=timezone.utc),
        )

    async def acquire_token(self, audience: str, force_refresh: bool = False) -> AccessGrant:
        """
        Get an access grant for the specified audience.

        Args:
            audience: Resource URI, e.g. "https://storage.azure.com/"
            force_refresh: Skip cache and fetch a fresh token

        Returns:
            AccessGrant with the bearer token and its expiry

        Raises:
            AuthenticationError: If the audience is invalid, the identity
                cannot be resolved, or the identity provider refuses the request
        """
        key = self._validate_audience(audience)

        if not force_refresh:
            cached = self._cache.get(key)
            if cached is not None:
                token_requests_counter.labels(audience=key, source="cache").inc()
                return cached

        lock = self._fetch_locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another request may have refreshed while we waited
            if not force_refresh:
                cached = self._cache.get(key)
                if cached is not None:
                    token_requests_counter.labels(audience=key, source="cache").inc()
                    return cached

            grant = await self._fetch_grant(key)
            self._cache.set(key, grant)
            token_requests_counter.labels(audience=key, source="fetch").inc()

        logger.debug(
            "Acquired token from Azure credential",
            extra={
                "audience": key,
                "auth_mode": self.auth_mode,
                "expires_at": grant.expires_at.isoformat(),
            },
        )
        return grant

    # -- AsyncTokenCredential protocol -------------------------------------

    async def get_token(
        self,
        *scopes: str,
        claims: Optional[str] = None,
        tenant_id: Optional[str] = None,
        **kwargs: Any,
    ) -> AccessToken:
        """
        Azure SDK entry point.

        A claims challenge (continuous access evaluation) bypasses the cache
        and goes straight to the underlying credential.
        """
        if not scopes:
            raise AuthenticationError("At least one scope is required")

        if claims:
            credential = self._get_azure_credential()
            try:
                return await credential.get_token(
                    *scopes, claims=claims, tenant_id=tenant_id, **kwargs
                )
            except Exception as e:
                raise AuthenticationError(
                    f"Failed to acquire token for {scopes[0]}: {e}", cause=e
                ) from e

        grant = await self.acquire_token(scope_to_audience(scopes[0]))
        return AccessToken(grant.token, grant.expires_on)

    async def close(self) -> None:
        if self._credential is not None:
            await self._credential.close()
            self._credential = None

    async def __aenter__(self) -> "AzureCredentialProvider":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -- Cache management --------------------------------------------------

    def clear_cache(self, audience: Optional[str] = None) -> None:
        """
        Clear cached grants.

        Args:
            audience: Specific audience to clear, or None to clear all
        """
        self._cache.clear(normalize_audience(audience) if audience else None)
        logger.debug(
            "Cleared token cache",
            extra={"audience": audience if audience else "all"},
        )

    def get_diagnostics(self) -> Dict[str, Any]:
        """
        Get authentication diagnostics for health checks.

        Returns:
            Dictionary with auth mode and the age of each cached grant.
            Token values are never included.
        """
        cached = {}
        for audience in self._cache.audiences():
            age = self._cache.get_age(audience)
            if age is not None:
                cached[audience] = round(age.total_seconds(), 1)

        return {
            "auth_mode": self.auth_mode,
            "spn_configured": self.has_spn_credentials,
            "user_assigned_identity": bool(self.managed_identity_client_id),
            "cached_token_age_seconds": cached,
        }


__all__ = [
    "AUTH_MODES",
    "AzureCredentialProvider",
    "DATABASE_RESOURCE",
    "KEYVAULT_RESOURCE",
    "MANAGEMENT_RESOURCE",
    "STORAGE_RESOURCE",
    "audience_to_scope",
    "normalize_audience",
    "scope_to_audience",
]
