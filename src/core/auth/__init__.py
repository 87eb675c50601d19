"""
Authentication module.

Provides audience-scoped Azure access tokens for both services.

Components:
    - TokenCache: Thread-safe grant caching with expiry-aware refresh
    - AzureCredentialProvider: managed identity / SPN / CLI / default chain,
      single-flight token fetches, Azure SDK AsyncTokenCredential support
"""

from .token_cache import DEFAULT_REFRESH_MARGIN, CachedToken, TokenCache
from .credentials import (
    AUTH_MODES,
    DATABASE_RESOURCE,
    KEYVAULT_RESOURCE,
    MANAGEMENT_RESOURCE,
    STORAGE_RESOURCE,
    AzureCredentialProvider,
    audience_to_scope,
    normalize_audience,
    scope_to_audience,
)

__all__ = [
    # Token cache
    "TokenCache",
    "CachedToken",
    "DEFAULT_REFRESH_MARGIN",
    # Azure credentials
    "AzureCredentialProvider",
    "AUTH_MODES",
    "STORAGE_RESOURCE",
    "DATABASE_RESOURCE",
    "MANAGEMENT_RESOURCE",
    "KEYVAULT_RESOURCE",
    "audience_to_scope",
    "normalize_audience",
    "scope_to_audience",
]
