"""
Public API service.

Each route acquires a credential, builds a client for one external system,
performs a single operation and returns the JSON envelope. Only
``/api/function/call`` makes two hops (token, then the private processor).

Routes:
    GET  /                      - service info and endpoint map
    GET  /health                - liveness
    GET  /health/identity       - credential diagnostics (no token values)
    GET  /metrics               - Prometheus exposition
    GET  /api/keyvault/test     - read the probe secret
    GET  /api/storage/test      - list containers
    POST /api/storage/upload    - upload a text blob
    GET  /api/database/test     - run SELECT @@VERSION
    GET  /api/function/call     - call the private processor
"""

import json
import logging

from aiohttp import web
from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError

from config import ServiceConfig
from core.auth.credentials import AzureCredentialProvider
from core.clients.factory import ServiceClientFactory
from core.errors.exceptions import ValidationError
from core.metrics import render_metrics
from core.types import TokenProvider
from core.web.envelope import success_response
from core.web.middleware import build_middlewares

logger = logging.getLogger(__name__)

SERVICE_NAME = "container-app-api"
VERSION = "1.0.0"

ENDPOINTS = {
    "health": "/health",
    "keyVaultTest": "/api/keyvault/test",
    "storageTest": "/api/storage/test",
    "storageUpload": "/api/storage/upload (POST)",
    "databaseTest": "/api/database/test",
    "functionCall": "/api/function/call",
}

DATABASE_PROBE_QUERY = "SELECT @@VERSION AS version"
PROCESSOR_PATH = "/api/process"

UPLOAD_FIELDS_REQUIRED = "containerName, blobName, and content are required"


class UploadRequest(BaseModel):
    """Body of POST /api/storage/upload."""

    container_name: str = Field(alias="containerName", min_length=1)
    blob_name: str = Field(alias="blobName", min_length=1)
    content: str = Field(min_length=1)

    model_config = {"populate_by_name": True}


async def parse_upload_request(request: web.Request) -> UploadRequest:
    """
    Validate the upload body before anything external is touched.

    Raises:
        ValidationError: If the body is not JSON or a required field is
            missing or empty
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(UPLOAD_FIELDS_REQUIRED, cause=e) from e

    if not isinstance(body, dict):
        raise ValidationError(UPLOAD_FIELDS_REQUIRED)

    try:
        return UploadRequest.model_validate(body)
    except SchemaValidationError as e:
        raise ValidationError(
            UPLOAD_FIELDS_REQUIRED,
            cause=e,
            context={"fields": [".".join(map(str, err["loc"])) for err in e.errors()]},
        ) from e


class ApiService:
    """
    The public API application.

    The credential provider and client factory are injected so tests can
    substitute fakes; in production both are built from the config and the
    provider is closed on application cleanup.
    """

    def __init__(
        self,
        config: ServiceConfig,
        provider: TokenProvider | None = None,
        clients: ServiceClientFactory | None = None,
    ):
        self.config = config
        self.provider = provider or AzureCredentialProvider.from_config(config)
        self.clients = clients or ServiceClientFactory(self.provider)
        self.app = self.create_app()

    def create_app(self) -> web.Application:
        app = web.Application(middlewares=build_middlewares(SERVICE_NAME, self.config.sanitize_errors))
        app.router.add_get("/", self.handle_root)
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/health/identity", self.handle_identity)
        app.router.add_get("/metrics", self.handle_metrics)
        app.router.add_get("/api/keyvault/test", self.handle_keyvault_test)
        app.router.add_get("/api/storage/test", self.handle_storage_test)
        app.router.add_post("/api/storage/upload", self.handle_storage_upload)
        app.router.add_get("/api/database/test", self.handle_database_test)
        app.router.add_get("/api/function/call", self.handle_function_call)
        app.on_cleanup.append(self._close_provider)
        return app

    async def _close_provider(self, app: web.Application) -> None:
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()
            logger.info("Credential provider closed")

    # -- Informational -----------------------------------------------------

    async def handle_root(self, request: web.Request) -> web.Response:
        return success_response(service=SERVICE_NAME, version=VERSION, endpoints=ENDPOINTS)

    async def handle_health(self, request: web.Request) -> web.Response:
        return success_response(status="healthy", service=SERVICE_NAME)

    async def handle_identity(self, request: web.Request) -> web.Response:
        diagnostics = getattr(self.provider, "get_diagnostics", None)
        return success_response(identity=diagnostics() if diagnostics else {})

    async def handle_metrics(self, request: web.Request) -> web.Response:
        body, content_type = render_metrics()
        return web.Response(body=body, headers={"Content-Type": content_type})

    # -- Dependency probes -------------------------------------------------

    async def handle_keyvault_test(self, request: web.Request) -> web.Response:
        """Read the probe secret; report whether it has a value, never the value."""
        vault_url = self.config.require("key_vault_url")
        secret_name = self.config.probe_secret_name

        secret = await self.clients.secrets(vault_url).get_secret(secret_name)

        return success_response(
            "Successfully retrieved secret from Key Vault",
            secretName=secret_name,
            secretExists=secret.exists,
        )

    async def handle_storage_test(self, request: web.Request) -> web.Response:
        account = self.config.require("storage_account_name")

        containers = await self.clients.blobs(account).list_containers()

        return success_response(
            "Successfully connected to Storage Account",
            storageAccount=account,
            containerCount=len(containers),
            containers=containers,
        )

    async def handle_storage_upload(self, request: web.Request) -> web.Response:
        upload = await parse_upload_request(request)
        account = self.config.require("storage_account_name")

        url = await self.clients.blobs(account).upload(
            upload.container_name,
            upload.blob_name,
            upload.content.encode("utf-8"),
        )

        return success_response(
            "Blob uploaded successfully",
            container=upload.container_name,
            blob=upload.blob_name,
            url=url,
        )

    async def handle_database_test(self, request: web.Request) -> web.Response:
        server = self.config.require("sql_server")
        database = self.config.require("sql_database")

        client = self.clients.sql(
            server,
            database,
            driver=self.config.sql_driver,
            timeout_seconds=self.config.request_timeout_seconds,
        )
        row_count = await client.run_query(DATABASE_PROBE_QUERY)

        return success_response(
            "Successfully connected to SQL Database",
            server=server,
            database=database,
            rowCount=row_count,
        )

    async def handle_function_call(self, request: web.Request) -> web.Response:
        """Call the private processor with a token for the peer audience."""
        base_url = self.config.require("function_app_url")

        grant = await self.provider.acquire_token(self.config.peer_audience)
        peer = self.clients.peer(
            base_url,
            audience=self.config.peer_audience,
            timeout_seconds=self.config.request_timeout_seconds,
        )
        function_response = await peer.call(PROCESSOR_PATH, grant.token)

        return success_response(
            "Successfully called Function App",
            functionResponse=function_response,
        )


def create_app(
    config: ServiceConfig,
    provider: TokenProvider | None = None,
    clients: ServiceClientFactory | None = None,
) -> web.Application:
    return ApiService(config, provider=provider, clients=clients).app
