"""Tests for logging context variables."""

import asyncio

from core.logging.context import clear_log_context, get_log_context, set_log_context


class TestLogContext:

    def test_defaults_are_empty(self):
        clear_log_context()
        assert get_log_context() == {"service": "", "request_id": "", "route": ""}

    def test_set_and_get(self):
        set_log_context(service="container-app-api", request_id="r1", route="/health")
        assert get_log_context() == {
            "service": "container-app-api",
            "request_id": "r1",
            "route": "/health",
        }

    def test_none_leaves_value_unchanged(self):
        set_log_context(service="svc", request_id="r1")
        set_log_context(request_id="r2")
        context = get_log_context()
        assert context["service"] == "svc"
        assert context["request_id"] == "r2"

    def test_clear(self):
        set_log_context(service="svc", request_id="r1", route="/")
        clear_log_context()
        assert get_log_context()["request_id"] == ""

    async def test_isolated_between_tasks(self):
        async def handle(request_id):
            set_log_context(request_id=request_id)
            await asyncio.sleep(0.01)
            return get_log_context()["request_id"]

        results = await asyncio.gather(handle("a"), handle("b"), handle("c"))
        assert results == ["a", "b", "c"]
