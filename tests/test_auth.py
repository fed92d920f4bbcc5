"""Tests for client creation and the OAuth client-credentials flow."""

from urllib.parse import parse_qs

import httpx
import pytest

from src.dynatrace.auth import OAuthTokenError, create_dt_http_client

from tests.conftest import ENVIRONMENT_URL


class TestCreateDtHttpClient:
    @pytest.mark.asyncio
    async def test_platform_token(self):
        client = await create_dt_http_client(ENVIRONMENT_URL, ["storage:logs:read"], platform_token="dt0s16.abc")

        assert client.environment_url == ENVIRONMENT_URL
        assert client._headers["Authorization"] == "Bearer dt0s16.abc"

    @pytest.mark.asyncio
    async def test_no_credentials(self):
        with pytest.raises(ValueError, match="Please provide either clientId and clientSecret or dtPlatformToken"):
            await create_dt_http_client(ENVIRONMENT_URL, [])

    @pytest.mark.asyncio
    async def test_oauth_preferred_over_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"access_token": "oauth-token", "token_type": "Bearer"})

        client = await create_dt_http_client(
            ENVIRONMENT_URL,
            ["app-engine:apps:run", "storage:logs:read"],
            client_id="dt0s02.client",
            client_secret="secret",
            platform_token="dt0s16.abc",
            transport=httpx.MockTransport(handler),
        )

        assert client._headers["Authorization"] == "Bearer oauth-token"
        (token_request,) = seen
        assert str(token_request.url) == "https://sso.dynatrace.com/sso/oauth2/token"
        form = parse_qs(token_request.content.decode())
        assert form["grant_type"] == ["client_credentials"]
        assert form["client_id"] == ["dt0s02.client"]
        assert form["scope"] == ["app-engine:apps:run storage:logs:read"]

    @pytest.mark.asyncio
    async def test_oauth_error_response(self):
        def handler(request):
            return httpx.Response(400, json={
                "error": "invalid_client",
                "error_description": "Client authentication failed",
                "issueId": "issue-1",
            })

        with pytest.raises(OAuthTokenError) as exc_info:
            await create_dt_http_client(
                ENVIRONMENT_URL,
                [],
                client_id="dt0s02.client",
                client_secret="wrong",
                transport=httpx.MockTransport(handler),
            )

        message = str(exc_info.value)
        assert "IssueId: issue-1" in message
        assert "invalid_client - Client authentication failed" in message
