"""
Private processor service.

Reachable only over the private network path. ``/api/process`` reads one
secret, probes one storage account and echoes its input stamped as
processed. The two integration probes degrade to status strings and never
fail the request.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from aiohttp import web

from config import ServiceConfig
from core.auth.credentials import AzureCredentialProvider
from core.clients.factory import ServiceClientFactory
from core.errors.exceptions import TopologyError, ValidationError, wrap_exception
from core.logging.utilities import log_exception
from core.metrics import render_metrics
from core.types import TokenProvider
from core.web.envelope import error_response_for, success_response
from core.web.middleware import build_middlewares

logger = logging.getLogger(__name__)

SERVICE_NAME = "function-app-processor"
PROCESSED_BY = "FunctionApp-PrivateBackend"

SERVICE_INFO = {
    "function": "process",
    "runtime": "Python",
    "managedIdentity": "Enabled",
}

NO_DATA = {"message": "No data provided"}
PROCESSED_MESSAGE = "Data processed successfully by private Function App"
FAILED_MESSAGE = "Error processing request"

KEYVAULT_CONNECTED = "Connected"
NOT_ACCESSED = "Not accessed"
STORAGE_NO_CONTAINERS = "Accessed - No containers found"


def utc_timestamp(moment: datetime) -> str:
    """ISO-8601 with microseconds and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def process_payload(input_data: Any, received_at: datetime) -> dict[str, Any]:
    """
    Stamp ``input_data`` as processed.

    Object inputs are copied with the processing fields added on top;
    anything else (list, string, number) is carried under ``data``.
    ``processedAt`` is always strictly later than ``received_at``.
    """
    processed_at = datetime.now(timezone.utc)
    if processed_at <= received_at:
        processed_at = received_at + timedelta(microseconds=1)

    output = dict(input_data) if isinstance(input_data, dict) else {"data": input_data}
    output.update(
        {
            "processed": True,
            "processedAt": utc_timestamp(processed_at),
            "processedBy": PROCESSED_BY,
        }
    )
    return output


async def read_input(request: web.Request) -> Any:
    """
    Decode the request body.

    A missing body, or one that decodes to a falsy scalar (null, 0, false,
    ""), becomes the default message. Empty objects and arrays pass through.

    Raises:
        ValidationError: If a non-empty body is not valid UTF-8 JSON
    """
    try:
        raw = await request.text()
    except UnicodeDecodeError as e:
        raise ValidationError(f"Request body is not valid UTF-8: {e.reason}", cause=e) from e
    if not raw.strip():
        return dict(NO_DATA)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Request body is not valid JSON: {e.msg}", cause=e) from e

    if not data and not isinstance(data, (dict, list)):
        return dict(NO_DATA)
    return data


class ProcessorService:
    """
    The private processor application.

    Inbound calls are not token-validated; the service relies on network
    isolation, as the deployment places it behind a private endpoint.
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
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/metrics", self.handle_metrics)
        app.router.add_route("GET", "/api/process", self.handle_process)
        app.router.add_route("POST", "/api/process", self.handle_process)
        app.on_cleanup.append(self._close_provider)
        return app

    async def _close_provider(self, app: web.Application) -> None:
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()
            logger.info("Credential provider closed")

    async def handle_health(self, request: web.Request) -> web.Response:
        return success_response(status="healthy", service=SERVICE_NAME)

    async def handle_metrics(self, request: web.Request) -> web.Response:
        body, content_type = render_metrics()
        return web.Response(body=body, headers={"Content-Type": content_type})

    # -- Integration probes ------------------------------------------------

    async def probe_keyvault(self) -> str:
        try:
            vault_url = self.config.require("key_vault_url")
            secret = await self.clients.secrets(vault_url).get_secret(self.config.probe_secret_name)
        except Exception as e:
            log_exception(logger, e, "Key Vault probe failed", level=logging.WARNING, include_traceback=False)
            return NOT_ACCESSED
        return KEYVAULT_CONNECTED if secret.exists else NOT_ACCESSED

    async def probe_storage(self) -> str:
        try:
            account = self.config.require("storage_account_name")
            first = await self.clients.blobs(account).first_container()
        except Exception as e:
            log_exception(logger, e, "Storage probe failed", level=logging.WARNING, include_traceback=False)
            return f"Error: {e}"
        if first is None:
            return STORAGE_NO_CONTAINERS
        return f"Accessed - Found container: {first}"

    # -- Process -----------------------------------------------------------

    async def handle_process(self, request: web.Request) -> web.Response:
        received_at = datetime.now(timezone.utc)
        logger.info("Processing request in private Function App")

        try:
            input_data = await read_input(request)
            keyvault_status, storage_status = await asyncio.gather(
                self.probe_keyvault(), self.probe_storage()
            )
            output = process_payload(input_data, received_at)
        except TopologyError as e:
            log_exception(logger, e, "Processing failed", include_traceback=not e.is_client_error)
            return error_response_for(e, sanitized=self.config.sanitize_errors, message=FAILED_MESSAGE)
        except Exception as e:
            log_exception(logger, e, "Processing failed")
            return error_response_for(
                wrap_exception(e), sanitized=self.config.sanitize_errors, message=FAILED_MESSAGE
            )

        return success_response(
            PROCESSED_MESSAGE,
            input=input_data,
            output=output,
            serviceInfo=SERVICE_INFO,
            integrations={"keyVault": keyvault_status, "storage": storage_status},
        )


def create_app(
    config: ServiceConfig,
    provider: TokenProvider | None = None,
    clients: ServiceClientFactory | None = None,
) -> web.Application:
    return ProcessorService(config, provider=provider, clients=clients).app
