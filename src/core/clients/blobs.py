"""Blob Storage container listing and uploads."""

import logging
from typing import Any, Optional

from azure.core.exceptions import ResourceExistsError
from azure.storage.blob.aio import BlobServiceClient

from core.clients.base import dependency_call
from core.types import TokenProvider

logger = logging.getLogger(__name__)

BLOB_ENDPOINT_TEMPLATE = "https://{account}.blob.core.windows.net"


def account_url(account: str) -> str:
    """Accept either a bare storage account name or a full blob endpoint."""
    if account.startswith(("https://", "http://")):
        return account.rstrip("/")
    return BLOB_ENDPOINT_TEMPLATE.format(account=account)


class BlobStoreClient:
    """Operations against one storage account's blob service."""

    capability = "blob-store"
    dependency = "blob"

    def __init__(self, account: str, provider: TokenProvider):
        self.account = account
        self.account_url = account_url(account)
        self._provider = provider

    @classmethod
    def with_credential(
        cls, endpoint: str, provider: TokenProvider, **options: Any
    ) -> "BlobStoreClient":
        return cls(endpoint, provider)

    def _service(self) -> BlobServiceClient:
        return BlobServiceClient(self.account_url, credential=self._provider)

    async def list_containers(self) -> list[str]:
        """Names of every container in the account."""
        async with dependency_call(
            self.dependency, "list_containers", endpoint=self.account_url
        ) as op:
            async with self._service() as service:
                names = [container.name async for container in service.list_containers()]
            op.add_context(container_count=len(names))
        return names

    async def first_container(self) -> Optional[str]:
        """Name of the first container, or None for an empty account."""
        async with dependency_call(
            self.dependency, "first_container", endpoint=self.account_url
        ):
            async with self._service() as service:
                async for container in service.list_containers(results_per_page=1):
                    return container.name
        return None

    async def upload(self, container: str, blob: str, data: bytes) -> str:
        """
        Upload ``data`` as a block blob, creating the container if needed.

        An existing blob with the same name is overwritten. New containers
        get blob-level public read access.

        Returns:
            URL of the uploaded blob
        """
        async with dependency_call(
            self.dependency,
            "upload",
            endpoint=self.account_url,
            container=container,
            blob_name=blob,
            blob_size=len(data),
        ):
            async with self._service() as service:
                container_client = service.get_container_client(container)
                try:
                    await container_client.create_container(public_access="blob")
                    logger.info("Created container", extra={"container": container})
                except ResourceExistsError:
                    pass

                blob_client = container_client.get_blob_client(blob)
                await blob_client.upload_blob(data, overwrite=True)
                url = blob_client.url

        return url
