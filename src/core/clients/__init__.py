"""
Service clients for the external systems behind both services.

Each client is a capability built from (endpoint, credential provider).
"""

from core.clients.base import ServiceClient, dependency_call, to_dependency_error
from core.clients.blobs import BlobStoreClient, account_url
from core.clients.factory import CLIENT_REGISTRY, ServiceClientFactory
from core.clients.peer import PeerServiceClient
from core.clients.secrets import SecretStoreClient, SecretValue
from core.clients.sql import SqlDatabaseClient, token_struct

__all__ = [
    "ServiceClient",
    "ServiceClientFactory",
    "CLIENT_REGISTRY",
    "SecretStoreClient",
    "SecretValue",
    "BlobStoreClient",
    "SqlDatabaseClient",
    "PeerServiceClient",
    "account_url",
    "token_struct",
    "dependency_call",
    "to_dependency_error",
]
