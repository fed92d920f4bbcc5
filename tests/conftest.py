"""Shared fixtures: a fake Grail backend served through httpx.MockTransport."""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from src.dynatrace import dql
from src.dynatrace.budget import reset_grail_budget_tracker
from src.dynatrace.client import DynatraceHttpClient

ENVIRONMENT_URL = "https://abc12345.apps.dynatrace.com"


class FakeGrail:
    """Answers the query API endpoints from canned responses and records every request."""

    def __init__(
        self,
        execute_response: Optional[Dict[str, Any]] = None,
        poll_responses: Optional[List[Dict[str, Any]]] = None,
        execute_status: int = 200,
        verify_response: Optional[Dict[str, Any]] = None
    ):
        self.execute_response = execute_response or {}
        self.poll_responses = list(poll_responses or [])
        self.execute_status = execute_status
        self.verify_response = verify_response or {"valid": True, "notifications": []}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("query:execute"):
            return httpx.Response(self.execute_status, json=self.execute_response)
        if path.endswith("query:poll"):
            return httpx.Response(200, json=self.poll_responses.pop(0))
        if path.endswith("query:cancel"):
            return httpx.Response(202)
        if path.endswith("query:verify"):
            return httpx.Response(200, json=self.verify_response)
        return httpx.Response(404, json={"error": {"code": 404, "message": f"no route for {path}"}})

    def calls(self, endpoint: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(endpoint)]

    def client(self) -> DynatraceHttpClient:
        return DynatraceHttpClient(ENVIRONMENT_URL, "test-token", transport=httpx.MockTransport(self.handler))


def grail_result(records=None, scanned_bytes=None, **grail) -> Dict[str, Any]:
    """Build a Grail result body; scanned_bytes None leaves the field out."""
    metadata = dict(grail)
    if scanned_bytes is not None:
        metadata["scannedBytes"] = scanned_bytes
    return {
        "records": records if records is not None else [],
        "types": [],
        "metadata": {"grail": metadata},
    }


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture(autouse=True)
def _reset_global_tracker():
    reset_grail_budget_tracker()
    yield
    reset_grail_budget_tracker()


@pytest.fixture
def sleeps(monkeypatch):
    """Replace the poll interval sleep and record the requested durations."""
    recorded: List[float] = []

    async def fake_sleep(seconds: float) -> None:
        recorded.append(seconds)

    monkeypatch.setattr(dql, "_sleep", fake_sleep)
    return recorded


@pytest.fixture(autouse=True)
def _no_sso_override(monkeypatch):
    monkeypatch.delenv("DT_SSO_URL", raising=False)
