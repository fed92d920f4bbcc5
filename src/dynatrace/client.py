"""
Dynatrace platform HTTP client

Thin async wrapper around httpx carrying the environment URL, bearer
authorization and user agent for every platform API call, with error
handling, logging and telemetry.
"""

import json
import platform
from typing import Any, Dict, Iterable, Optional

import httpx

from src.logging import get_logger
from src.telemetry import trace_dynatrace_api_call, MetricsTimer

from .version import __version__

logger = get_logger('HTTP')

DEFAULT_TIMEOUT = 60.0


def get_user_agent() -> str:
    """
    User agent identifying this server towards Dynatrace.

    Format: dynatrace-mcp-server/vX.Y.Z (<platform>-<arch>)
    """
    return f"dynatrace-mcp-server/v{__version__} ({platform.system().lower()}-{platform.machine().lower()})"


class DynatraceAPIError(Exception):
    """Raised when the Dynatrace platform answers with an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DynatraceHttpClient:
    """
    Async HTTP client bound to one Dynatrace environment.

    Args:
        environment_url: e.g. https://abc12345.apps.dynatrace.com
        token: Bearer token (platform token or OAuth access token)
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        environment_url: str,
        token: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.environment_url = environment_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {token}",
            "User-Agent": get_user_agent(),
            "Accept": "application/json",
        }

    @trace_dynatrace_api_call(operation="http_request")
    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        expected_status: Iterable[int] = (200,)
    ) -> Any:
        """
        Make a request to the Dynatrace platform API.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path (without environment URL)
            params: Query parameters
            json_data: JSON body
            headers: Additional headers merged over the defaults
            expected_status: Status codes treated as success

        Returns:
            Parsed JSON body, or None for empty responses

        Raises:
            DynatraceAPIError: For any status outside expected_status
            httpx.HTTPError: For transport level failures
        """
        url = f"{self.environment_url}/{path.lstrip('/')}"
        request_headers = dict(self._headers)
        if headers:
            request_headers.update(headers)

        logger.debug(f"{method} {url} | params:{params} | data_size:{len(json.dumps(json_data)) if json_data else 0}")

        with MetricsTimer(path, method) as timer:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_data,
                    headers=request_headers
                )
            timer.set_status(response.status_code)

        return _process_response(response, expected_status)


def _process_response(response: httpx.Response, expected_status: Iterable[int]) -> Any:
    """
    Turn an HTTP response into parsed JSON or a DynatraceAPIError.
    """
    response_text = response.text

    if response.status_code not in tuple(expected_status):
        logger.warning(f"response {response.status_code} | size:{len(response_text)}")
        try:
            body = response.json()
        except ValueError:
            body = response_text

        message = response_text[:500]
        if isinstance(body, dict):
            # platform errors look like {"error": {"code": 400, "message": "...", "details": {...}}}
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                message = error["message"]
            elif body.get("message"):
                message = body["message"]

        raise DynatraceAPIError(
            f"Dynatrace API error {response.status_code}: {message}",
            status_code=response.status_code,
            body=body
        )

    logger.debug(f"response {response.status_code} | size:{len(response_text)}")

    if not response_text:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise DynatraceAPIError(
            f"Invalid JSON response: {e}",
            status_code=response.status_code,
            body=response_text
        ) from e
