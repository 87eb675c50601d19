"""Tests for BlobStoreClient."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core.exceptions import ResourceExistsError, ServiceRequestError

from core.clients.blobs import BlobStoreClient, account_url
from core.errors.exceptions import DependencyError


class AsyncIter:
    """Async iterator over fixed items, standing in for the SDK's paged results."""

    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


def _patched_service(service):
    service_cls = MagicMock()
    service_cls.return_value.__aenter__.return_value = service
    return patch("core.clients.blobs.BlobServiceClient", service_cls), service_cls


def _service_with_containers(*names):
    service = MagicMock()
    service.list_containers = MagicMock(
        side_effect=lambda **kwargs: AsyncIter(SimpleNamespace(name=n) for n in names)
    )
    return service


class TestAccountUrl:

    def test_bare_account_name(self):
        assert account_url("stdemo") == "https://stdemo.blob.core.windows.net"

    def test_full_endpoint_kept(self):
        assert account_url("https://stdemo.blob.core.windows.net/") == "https://stdemo.blob.core.windows.net"


class TestListContainers:

    async def test_lists_all_names(self, provider):
        patcher, service_cls = _patched_service(_service_with_containers("uploads", "logs"))
        with patcher:
            names = await BlobStoreClient("stdemo", provider).list_containers()

        assert names == ["uploads", "logs"]
        service_cls.assert_called_once_with("https://stdemo.blob.core.windows.net", credential=provider)

    async def test_empty_account(self, provider):
        patcher, _ = _patched_service(_service_with_containers())
        with patcher:
            assert await BlobStoreClient("stdemo", provider).list_containers() == []

    async def test_transport_failure(self, provider):
        service = MagicMock()
        service.list_containers = MagicMock(side_effect=ServiceRequestError("name resolution failed"))
        patcher, _ = _patched_service(service)
        with patcher:
            with pytest.raises(DependencyError) as exc_info:
                await BlobStoreClient("stdemo", provider).list_containers()
        assert exc_info.value.dependency == "blob"


class TestFirstContainer:

    async def test_returns_first(self, provider):
        patcher, _ = _patched_service(_service_with_containers("alpha", "beta"))
        with patcher:
            assert await BlobStoreClient("stdemo", provider).first_container() == "alpha"

    async def test_none_when_empty(self, provider):
        patcher, _ = _patched_service(_service_with_containers())
        with patcher:
            assert await BlobStoreClient("stdemo", provider).first_container() is None


class TestUpload:

    def _service(self, create_side_effect=None):
        blob_client = MagicMock()
        blob_client.upload_blob = AsyncMock()
        blob_client.url = "https://stdemo.blob.core.windows.net/uploads/hello.txt"
        container_client = MagicMock()
        container_client.create_container = AsyncMock(side_effect=create_side_effect)
        container_client.get_blob_client.return_value = blob_client
        service = MagicMock()
        service.get_container_client.return_value = container_client
        return service, container_client, blob_client

    async def test_creates_container_and_overwrites_blob(self, provider):
        service, container_client, blob_client = self._service()
        patcher, _ = _patched_service(service)
        with patcher:
            url = await BlobStoreClient("stdemo", provider).upload("uploads", "hello.txt", b"hi")

        assert url == "https://stdemo.blob.core.windows.net/uploads/hello.txt"
        container_client.create_container.assert_awaited_once_with(public_access="blob")
        blob_client.upload_blob.assert_awaited_once_with(b"hi", overwrite=True)

    async def test_existing_container_is_reused(self, provider):
        service, _, blob_client = self._service(ResourceExistsError("ContainerAlreadyExists"))
        patcher, _ = _patched_service(service)
        with patcher:
            await BlobStoreClient("stdemo", provider).upload("uploads", "hello.txt", b"hi")

        blob_client.upload_blob.assert_awaited_once()

    async def test_upload_failure(self, provider):
        service, _, blob_client = self._service()
        blob_client.upload_blob.side_effect = ServiceRequestError("connection reset")
        patcher, _ = _patched_service(service)
        with patcher:
            with pytest.raises(DependencyError):
                await BlobStoreClient("stdemo", provider).upload("uploads", "hello.txt", b"hi")
