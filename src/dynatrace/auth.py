"""
Dynatrace authentication

Creates DynatraceHttpClient instances either from a platform token or via
the OAuth client-credentials flow against Dynatrace SSO.
"""

from typing import Any, Dict, List, Optional

import httpx

from src.logging import get_logger

from .client import DynatraceHttpClient
from .config import get_sso_url

logger = get_logger('AUTH')

SSO_TOKEN_PATH = '/sso/oauth2/token'


class OAuthTokenError(Exception):
    """Raised when Dynatrace SSO does not hand out an access token."""


async def request_token(
    client_id: str,
    client_secret: str,
    sso_auth_url: str,
    scopes: List[str],
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Dict[str, Any]:
    """
    Request a token via the client-credentials flow.

    The JSON body is returned even for 4xx/5xx answers, as it carries
    error, error_description and issueId.
    """
    async with httpx.AsyncClient(transport=transport, timeout=30.0) as client:
        response = await client.post(
            sso_auth_url,
            data={
                'grant_type': 'client_credentials',
                'client_id': client_id,
                'client_secret': client_secret,
                'scope': ' '.join(scopes),
            },
            headers={'Content-Type': 'application/x-www-form-urlencoded'}
        )

    if response.status_code >= 400:
        logger.error(f"failed to fetch token | status:{response.status_code} | reason:{response.reason_phrase}")

    try:
        return response.json()
    except ValueError:
        return {'error': f"HTTP {response.status_code}", 'error_description': response.text[:200]}


async def create_oauth_http_client(
    environment_url: str,
    scopes: List[str],
    client_id: str,
    client_secret: str,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> DynatraceHttpClient:
    """
    Create a client authenticated through OAuth client credentials.

    Raises:
        ValueError: If client id, secret or environment URL are missing
        OAuthTokenError: If SSO answers without a usable token
    """
    if not client_id:
        raise ValueError('Failed to retrieve OAuth client id from env "OAUTH_CLIENT_ID"')
    if not client_secret:
        raise ValueError('Failed to retrieve OAuth client secret from env "OAUTH_CLIENT_SECRET"')
    if not environment_url:
        raise ValueError('Failed to retrieve environment URL from env "DT_ENVIRONMENT"')

    logger.info(f"authenticating | environment:{environment_url} | client_id:{client_id} | scopes:{', '.join(scopes)}")

    sso_auth_url = f"{get_sso_url(environment_url)}{SSO_TOKEN_PATH}"
    logger.debug(f"using SSO auth URL | url:{sso_auth_url}")

    token_response = await request_token(client_id, client_secret, sso_auth_url, scopes, transport=transport)

    if (
        not token_response.get('access_token')
        or token_response.get('error')
        or token_response.get('error_description')
        or token_response.get('issueId')
    ):
        raise OAuthTokenError(
            f"Failed to retrieve OAuth token (IssueId: {token_response.get('issueId')}): "
            f"{token_response.get('error')} - {token_response.get('error_description')}. "
            "Note: Your OAuth client is most likely not configured correctly and/or is missing scopes."
        )

    logger.info("successfully retrieved token from SSO")
    return DynatraceHttpClient(environment_url, token_response['access_token'], transport=transport)


async def create_dt_http_client(
    environment_url: str,
    scopes: List[str],
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    platform_token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> DynatraceHttpClient:
    """
    Create a Dynatrace HTTP client from whichever credentials are configured.

    OAuth client credentials take precedence over a platform token.

    Raises:
        ValueError: If neither credential set is provided
    """
    if client_id and client_secret:
        return await create_oauth_http_client(environment_url, scopes, client_id, client_secret, transport=transport)
    if platform_token:
        return DynatraceHttpClient(environment_url, platform_token, transport=transport)
    raise ValueError(
        'Failed to create Dynatrace HTTP Client: Please provide either clientId and clientSecret or dtPlatformToken'
    )
