"""
Grail query execution

Submits DQL statements to the Grail query API, waits for asynchronous
executions by polling, and books the scanned bytes against the session's
Grail budget.

The query text is never inspected here; validation is the job of the
query:verify endpoint (see verify_dql).
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from src.logging import get_logger
from src.telemetry import record_grail_bytes_scanned

from .budget import (
    BudgetExceededError,
    BudgetState,
    GrailBudgetTracker,
    format_bytes_as_gb,
    generate_budget_warning,
    get_grail_budget_tracker,
)
from .client import DynatraceHttpClient, get_user_agent

logger = get_logger('DQL')

QUERY_API = "/platform/storage/query/v1"
POLL_INTERVAL_SECONDS = 2.0

# Poll states meaning "keep waiting"
PENDING_STATES = ("RUNNING", "NOT_STARTED")


@dataclass(frozen=True)
class DqlRequest:
    """A DQL statement plus optional result limits."""
    query: str
    max_result_records: Optional[int] = None
    max_result_bytes: Optional[int] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"query": self.query}
        if self.max_result_records is not None:
            body["maxResultRecords"] = self.max_result_records
        if self.max_result_bytes is not None:
            body["maxResultBytes"] = self.max_result_bytes
        return body


@dataclass(frozen=True)
class ImmediateResult:
    """Grail finished the query within the execute call."""
    result: Dict[str, Any]


@dataclass(frozen=True)
class PendingExecution:
    """Grail accepted the query; the result has to be polled with request_token."""
    request_token: str


Submission = Union[ImmediateResult, PendingExecution, None]


@dataclass(frozen=True)
class PollResponse:
    state: str
    result: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ScanMetadata:
    """Cost facts of one completed execution. None means Grail did not report the value."""
    scanned_bytes: Optional[int] = None
    scanned_records: Optional[int] = None
    execution_time_ms: Optional[int] = None
    query_id: Optional[str] = None
    sampled: Optional[bool] = None

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "ScanMetadata":
        grail = (result.get("metadata") or {}).get("grail") or {}
        return cls(
            scanned_bytes=grail.get("scannedBytes"),
            scanned_records=grail.get("scannedRecords"),
            execution_time_ms=grail.get("executionTimeMilliseconds"),
            query_id=grail.get("queryId"),
            sampled=grail.get("sampled"),
        )


@dataclass
class DqlExecutionResult:
    records: List[Dict[str, Any]]
    metadata: ScanMetadata
    types: List[Any] = field(default_factory=list)
    budget_state: Optional[BudgetState] = None
    budget_warning: Optional[str] = None

    @property
    def scanned_bytes(self) -> Optional[int]:
        return self.metadata.scanned_bytes

    @property
    def scanned_records(self) -> Optional[int]:
        return self.metadata.scanned_records

    @property
    def execution_time_ms(self) -> Optional[int]:
        return self.metadata.execution_time_ms

    @property
    def query_id(self) -> Optional[str]:
        return self.metadata.query_id

    @property
    def sampled(self) -> Optional[bool]:
        return self.metadata.sampled


@dataclass(frozen=True)
class DqlNotification:
    severity: str
    message: str


@dataclass(frozen=True)
class DqlVerification:
    valid: bool
    notifications: List[DqlNotification] = field(default_factory=list)


class QueryExecutionClient:
    """Calls of the Grail query API used by execute_dql and verify_dql."""

    def __init__(self, client: DynatraceHttpClient, client_context: Optional[str] = None):
        self.client = client
        self.client_context = client_context or get_user_agent()

    @property
    def _headers(self) -> Dict[str, str]:
        # lets Dynatrace attribute query usage to this server
        return {"dt-client-context": self.client_context}

    async def submit(self, request: DqlRequest) -> Submission:
        response = await self.client.request(
            method="POST",
            path=f"{QUERY_API}/query:execute",
            json_data=request.to_body(),
            headers=self._headers,
            expected_status=(200, 202),
        ) or {}

        if response.get("result"):
            return ImmediateResult(response["result"])
        if response.get("requestToken"):
            return PendingExecution(response["requestToken"])
        return None

    async def poll(self, request_token: str) -> PollResponse:
        response = await self.client.request(
            method="GET",
            path=f"{QUERY_API}/query:poll",
            params={"request-token": request_token},
            headers=self._headers,
        ) or {}
        return PollResponse(state=response.get("state", ""), result=response.get("result"))

    async def cancel(self, request_token: str) -> None:
        await self.client.request(
            method="POST",
            path=f"{QUERY_API}/query:cancel",
            params={"request-token": request_token},
            headers=self._headers,
            expected_status=(200, 202, 204, 410),
        )

    async def verify(self, query: str) -> DqlVerification:
        response = await self.client.request(
            method="POST",
            path=f"{QUERY_API}/query:verify",
            json_data={"query": query},
            headers=self._headers,
        ) or {}
        notifications = [
            DqlNotification(severity=n.get("severity", "INFO"), message=n.get("message", ""))
            for n in response.get("notifications") or []
        ]
        return DqlVerification(valid=bool(response.get("valid")), notifications=notifications)


def escape_dql_string(value: str) -> str:
    """Escape a value for use inside a double quoted DQL string literal."""
    return value.replace('\\', '\\\\').replace('"', '\\"')


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def _wait_for_result(
    query_client: QueryExecutionClient,
    request_token: str,
    max_poll_attempts: Optional[int]
) -> Optional[Dict[str, Any]]:
    """
    Poll until Grail returns a result or leaves the pending states.

    Without max_poll_attempts the loop does not end while Grail keeps
    answering RUNNING or NOT_STARTED.
    """
    attempts = 0
    while True:
        await _sleep(POLL_INTERVAL_SECONDS)
        poll_response = await query_client.poll(request_token)
        attempts += 1

        if poll_response.result:
            return poll_response.result

        if poll_response.state not in PENDING_STATES:
            logger.warning(
                f"query finished without result | state:{poll_response.state} | polls:{attempts}"
            )
            return None

        if max_poll_attempts is not None and attempts >= max_poll_attempts:
            logger.warning(f"giving up on query | state:{poll_response.state} | polls:{attempts}")
            await query_client.cancel(request_token)
            return None


async def execute_dql(
    client: DynatraceHttpClient,
    request: Union[DqlRequest, str],
    budget_limit_gb: Optional[float] = None,
    *,
    budget_tracker: Optional[GrailBudgetTracker] = None,
    max_poll_attempts: Optional[int] = None
) -> Optional[DqlExecutionResult]:
    """
    Execute a DQL statement and wait for its result.

    If Grail answers immediately the result is returned right away,
    otherwise the execution is polled every 2 seconds.

    Budget tracking applies when budget_tracker is given, or when
    budget_limit_gb is given (the session-wide tracker from
    get_grail_budget_tracker is used then).

    Args:
        client: Dynatrace HTTP client with storage scopes
        request: DqlRequest or a bare DQL statement
        budget_limit_gb: Budget for the session-wide tracker, -1 for unlimited
        budget_tracker: Explicit tracker, takes precedence over budget_limit_gb
        max_poll_attempts: Optional upper bound for poll calls; the execution
            is cancelled once it is reached. Unbounded by default.

    Returns:
        DqlExecutionResult, or None if Grail produced no result

    Raises:
        BudgetExceededError: If the budget is used up; nothing is submitted then
        DynatraceAPIError: For API errors from execute or poll
        ValueError: If max_poll_attempts is given and smaller than 1
    """
    if max_poll_attempts is not None and max_poll_attempts < 1:
        raise ValueError(f"max_poll_attempts must be at least 1, got {max_poll_attempts}")

    if isinstance(request, str):
        request = DqlRequest(query=request)

    tracker = budget_tracker
    if tracker is None and budget_limit_gb is not None:
        tracker = get_grail_budget_tracker(budget_limit_gb)

    if tracker is not None:
        state = tracker.get_state()
        if state.is_budget_exceeded:
            warning = generate_budget_warning(state, 0)
            logger.warning(f"query blocked | total_bytes:{state.total_bytes_scanned} | limit_bytes:{state.budget_limit_bytes}")
            raise BudgetExceededError(
                f"Cannot execute DQL query: Grail budget exceeded. {warning}",
                budget_state=state
            )

    query_client = QueryExecutionClient(client)
    logger.debug(f"executing query | query:{request.query[:200]}")

    submission = await query_client.submit(request)

    if isinstance(submission, ImmediateResult):
        result = submission.result
    elif isinstance(submission, PendingExecution):
        logger.debug("query running asynchronously | polling for result")
        result = await _wait_for_result(query_client, submission.request_token, max_poll_attempts)
        if result is None:
            return None
    else:
        logger.error("query:execute returned neither a result nor a request token")
        return None

    metadata = ScanMetadata.from_result(result)
    execution = DqlExecutionResult(
        records=result.get("records") or [],
        types=result.get("types") or [],
        metadata=metadata,
    )

    scanned_bytes = metadata.scanned_bytes or 0
    record_grail_bytes_scanned(scanned_bytes, metadata.query_id)

    if tracker is not None:
        execution.budget_state = tracker.add_bytes_scanned(scanned_bytes)
        execution.budget_warning = generate_budget_warning(execution.budget_state, scanned_bytes)

    logger.info(
        f"query complete | records:{len(execution.records)} | "
        f"scanned_bytes:{metadata.scanned_bytes} ({format_bytes_as_gb(scanned_bytes)} GB) | "
        f"scanned_records:{metadata.scanned_records} | execution_ms:{metadata.execution_time_ms} | "
        f"query_id:{metadata.query_id} | sampled:{metadata.sampled}"
    )
    if execution.budget_warning:
        logger.warning(execution.budget_warning)

    return execution


async def verify_dql(client: DynatraceHttpClient, query: str) -> DqlVerification:
    """Verify a DQL statement with Grail without executing it."""
    return await QueryExecutionClient(client).verify(query)
