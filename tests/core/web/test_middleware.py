"""Tests for the shared aiohttp middlewares and the response envelope."""

import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from core.errors.exceptions import ConfigurationError, DependencyError, ValidationError
from core.metrics import REGISTRY
from core.web.envelope import error_response, success_response
from core.web.middleware import REQUEST_ID_HEADER, build_middlewares

SERVICE = "test-service"


def _app(sanitize_errors=False):
    async def ok(request):
        return success_response("fine", value=1)

    async def invalid(request):
        raise ValidationError("containerName, blobName, and content are required")

    async def unconfigured(request):
        raise ConfigurationError("FUNCTION_APP_URL")

    async def upstream(request):
        raise DependencyError("storage account sttest refused the connection", dependency="blob")

    async def crash(request):
        raise RuntimeError("unexpected")

    app = web.Application(middlewares=build_middlewares(SERVICE, sanitize_errors))
    app.router.add_get("/ok", ok)
    app.router.add_get("/invalid", invalid)
    app.router.add_get("/unconfigured", unconfigured)
    app.router.add_get("/upstream", upstream)
    app.router.add_get("/crash", crash)
    return app


@pytest.fixture
async def client():
    async with TestClient(TestServer(_app())) as client:
        yield client


@pytest.fixture
async def sanitized_client():
    async with TestClient(TestServer(_app(sanitize_errors=True))) as client:
        yield client


class TestEnvelope:

    def test_success_has_no_error_key(self):
        body = json.loads(success_response("done", error="ignored").body)
        assert body == {"success": True, "message": "done"}

    def test_error_cannot_be_overridden_by_fields(self):
        body = json.loads(error_response("bad", http_status=400, success=True, detail="x").body)
        assert body == {"success": False, "error": "bad", "detail": "x"}

    def test_status_codes(self):
        assert success_response().status == 200
        assert error_response("x").status == 500


class TestRequestContextMiddleware:

    async def test_generates_request_id(self, client):
        response = await client.get("/ok")
        assert len(response.headers[REQUEST_ID_HEADER]) == 32

    async def test_echoes_incoming_request_id(self, client):
        response = await client.get("/ok", headers={REQUEST_ID_HEADER: "abc-123"})
        assert response.headers[REQUEST_ID_HEADER] == "abc-123"

    async def test_records_request_metrics(self, client):
        labels = {"service": SERVICE, "route": "/ok", "status": "200"}
        before = REGISTRY.get_sample_value("topology_http_requests_total", labels) or 0
        await client.get("/ok")
        assert REGISTRY.get_sample_value("topology_http_requests_total", labels) == before + 1

    async def test_error_status_recorded(self, client):
        labels = {"service": SERVICE, "route": "/upstream", "status": "500"}
        before = REGISTRY.get_sample_value("topology_http_requests_total", labels) or 0
        await client.get("/upstream")
        assert REGISTRY.get_sample_value("topology_http_requests_total", labels) == before + 1


class TestErrorMiddleware:

    async def test_success_passes_through(self, client):
        response = await client.get("/ok")
        assert response.status == 200
        assert await response.json() == {"success": True, "message": "fine", "value": 1}

    async def test_validation_is_400(self, client):
        response = await client.get("/invalid")
        assert response.status == 400
        assert await response.json() == {
            "success": False,
            "error": "containerName, blobName, and content are required",
        }

    async def test_configuration_is_500_naming_setting(self, client):
        response = await client.get("/unconfigured")
        assert response.status == 500
        assert (await response.json())["error"] == "FUNCTION_APP_URL not configured"

    async def test_dependency_message_verbatim_by_default(self, client):
        response = await client.get("/upstream")
        assert response.status == 500
        assert (await response.json())["error"] == "storage account sttest refused the connection"

    async def test_unexpected_exception_is_500(self, client):
        response = await client.get("/crash")
        body = await response.json()
        assert response.status == 500
        assert body == {"success": False, "error": "unexpected"}

    async def test_unknown_route_uses_envelope(self, client):
        response = await client.get("/missing")
        body = await response.json()
        assert response.status == 404
        assert body["success"] is False
        assert "error" in body

    async def test_wrong_method_uses_envelope(self, client):
        response = await client.post("/ok")
        assert response.status == 405
        assert (await response.json())["success"] is False

    async def test_sanitized_mode_hides_details(self, sanitized_client):
        response = await sanitized_client.get("/upstream")
        assert (await response.json())["error"] == "An upstream service call failed"

    async def test_sanitized_mode_keeps_validation_message(self, sanitized_client):
        response = await sanitized_client.get("/invalid")
        assert (await response.json())["error"] == "containerName, blobName, and content are required"
