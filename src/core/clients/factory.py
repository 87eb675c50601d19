"""
Capability-based construction of service clients.

``ServiceClientFactory.with_credential(capability, endpoint)`` is the single
seam through which handlers obtain clients, so every client shares the same
credential provider (and therefore the same token cache).

Capabilities:
    secret-lookup  -> SecretStoreClient   (get_secret)
    blob-list      -> BlobStoreClient     (list_containers, first_container)
    blob-upload    -> BlobStoreClient     (upload)
    sql-query      -> SqlDatabaseClient   (run_query)
    http-call      -> PeerServiceClient   (call)
"""

from typing import Any, Dict, Type

from core.clients.base import ServiceClient
from core.clients.blobs import BlobStoreClient
from core.clients.peer import PeerServiceClient
from core.clients.secrets import SecretStoreClient
from core.clients.sql import SqlDatabaseClient
from core.types import TokenProvider

CLIENT_REGISTRY: Dict[str, Type[ServiceClient]] = {
    "secret-lookup": SecretStoreClient,
    "blob-list": BlobStoreClient,
    "blob-upload": BlobStoreClient,
    "blob-store": BlobStoreClient,
    "sql-query": SqlDatabaseClient,
    "http-call": PeerServiceClient,
}


class ServiceClientFactory:
    """Builds clients bound to one credential provider."""

    def __init__(self, provider: TokenProvider):
        self.provider = provider

    def with_credential(self, capability: str, endpoint: str, **options: Any):
        """
        Build the client for ``capability`` pointed at ``endpoint``.

        Construction is side-effect free; nothing is contacted until the
        client's operation is awaited.

        Raises:
            ValueError: If the capability is unknown or the endpoint is empty
        """
        try:
            client_cls = CLIENT_REGISTRY[capability]
        except KeyError:
            raise ValueError(
                f"Unknown capability '{capability}'. "
                f"Expected one of: {', '.join(sorted(CLIENT_REGISTRY))}"
            ) from None

        if not endpoint:
            raise ValueError(f"An endpoint is required for capability '{capability}'")

        return client_cls.with_credential(endpoint, self.provider, **options)

    def secrets(self, vault_url: str) -> SecretStoreClient:
        return self.with_credential("secret-lookup", vault_url)

    def blobs(self, account: str) -> BlobStoreClient:
        return self.with_credential("blob-store", account)

    def sql(self, server: str, database: str, **options: Any) -> SqlDatabaseClient:
        return self.with_credential("sql-query", server, database=database, **options)

    def peer(self, base_url: str, **options: Any) -> PeerServiceClient:
        return self.with_credential("http-call", base_url, **options)
