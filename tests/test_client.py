"""Tests for the Dynatrace HTTP client."""

import httpx
import pytest

from src.dynatrace.client import DynatraceAPIError, DynatraceHttpClient, get_user_agent
from src.dynatrace.version import __version__

from tests.conftest import ENVIRONMENT_URL


def make_client(handler) -> DynatraceHttpClient:
    return DynatraceHttpClient(ENVIRONMENT_URL + "/", "secret-token", transport=httpx.MockTransport(handler))


def test_user_agent_format():
    agent = get_user_agent()

    assert agent.startswith(f"dynatrace-mcp-server/v{__version__} (")
    assert agent.endswith(")")


class TestRequest:
    @pytest.mark.asyncio
    async def test_sends_default_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        result = await make_client(handler).request("GET", "/api/v2/entities/HOST-1")

        assert result == {"ok": True}
        assert str(seen[0].url) == f"{ENVIRONMENT_URL}/api/v2/entities/HOST-1"
        assert seen[0].headers["Authorization"] == "Bearer secret-token"
        assert seen[0].headers["User-Agent"] == get_user_agent()

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        result = await make_client(lambda request: httpx.Response(202)).request(
            "POST", "/platform/storage/query/v1/query:cancel", expected_status=(202,)
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_platform_error_message(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"code": 403, "message": "Forbidden: missing scope"}})

        with pytest.raises(DynatraceAPIError) as exc_info:
            await make_client(handler).request("GET", "/platform/anything")

        assert exc_info.value.status_code == 403
        assert str(exc_info.value) == "Dynatrace API error 403: Forbidden: missing scope"
        assert exc_info.value.body == {"error": {"code": 403, "message": "Forbidden: missing scope"}}

    @pytest.mark.asyncio
    async def test_unexpected_status_with_text_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(DynatraceAPIError) as exc_info:
            await make_client(handler).request("GET", "/platform/anything")

        assert exc_info.value.status_code == 502
        assert exc_info.value.body == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        with pytest.raises(DynatraceAPIError, match="Invalid JSON response"):
            await make_client(handler).request("GET", "/platform/anything")
