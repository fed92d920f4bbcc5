"""
OpenTelemetry metrics collection for MCP server operations

Business metrics for tool usage, Dynatrace API traffic and Grail cost.
All record_* functions are no-ops until initialize_metrics() succeeded.
"""

import time
from typing import Any, Dict
from src.logging import get_logger

logger = get_logger('TELEMETRY_METRICS')

# Global metrics state
_meter = None
_metrics_enabled = False

# Metric instruments
_tool_invocation_counter = None
_tool_duration_histogram = None
_api_request_counter = None
_api_duration_histogram = None
_grail_bytes_scanned_counter = None
_error_counter = None


def initialize_metrics() -> bool:
    """Initialize OpenTelemetry metrics instruments."""
    global _meter, _metrics_enabled
    global _tool_invocation_counter, _tool_duration_histogram
    global _api_request_counter, _api_duration_histogram
    global _grail_bytes_scanned_counter, _error_counter

    try:
        from src.telemetry.config import get_meter
        _meter = get_meter()

        if not _meter:
            logger.debug("metrics not available | meter not initialized")
            return False

        _tool_invocation_counter = _meter.create_counter(
            name="mcp_tool_invocations_total",
            description="Total number of MCP tool invocations",
            unit="1"
        )
        _tool_duration_histogram = _meter.create_histogram(
            name="mcp_tool_duration_seconds",
            description="Duration of MCP tool executions",
            unit="s"
        )
        _api_request_counter = _meter.create_counter(
            name="dynatrace_api_requests_total",
            description="Total number of Dynatrace platform API requests",
            unit="1"
        )
        _api_duration_histogram = _meter.create_histogram(
            name="dynatrace_api_duration_seconds",
            description="Duration of Dynatrace platform API requests",
            unit="s"
        )
        _grail_bytes_scanned_counter = _meter.create_counter(
            name="grail_bytes_scanned_total",
            description="Bytes scanned by Grail queries in this process",
            unit="By"
        )
        _error_counter = _meter.create_counter(
            name="mcp_errors_total",
            description="Total number of errors by type",
            unit="1"
        )

        _metrics_enabled = True
        logger.info("metrics initialization complete")
        return True

    except Exception as e:
        logger.error(f"metrics initialization failed | error: {e}")
        return False


def _string_attributes(prefix: str, attributes: Dict[str, Any]) -> Dict[str, str]:
    return {
        f"{prefix}.{key}": str(value)
        for key, value in attributes.items()
        if isinstance(value, (str, int, float, bool))
    }


def record_tool_invocation(tool_name: str, duration: float, success: bool, **attributes):
    """
    Record metrics for MCP tool invocations.

    Args:
        tool_name: Name of the MCP tool
        duration: Execution duration in seconds
        success: Whether the invocation was successful
        **attributes: Additional attributes to record
    """
    if not _metrics_enabled or not _tool_invocation_counter:
        return

    try:
        metric_attributes = {
            "tool_name": tool_name,
            "status": "success" if success else "error"
        }
        metric_attributes.update(_string_attributes("tool", attributes))

        _tool_invocation_counter.add(1, metric_attributes)
        _tool_duration_histogram.record(duration, metric_attributes)
        logger.debug(f"recorded tool metrics | tool:{tool_name} | duration:{duration:.3f}s | success:{success}")

    except Exception as e:
        logger.debug(f"failed to record tool metrics | error: {e}")


def record_api_request(path: str, method: str, status_code: int, duration: float):
    """
    Record metrics for Dynatrace API requests.

    Args:
        path: API path (without environment URL)
        method: HTTP method
        status_code: HTTP status code
        duration: Request duration in seconds
    """
    if not _metrics_enabled or not _api_request_counter:
        return

    try:
        metric_attributes = {
            "path": path,
            "method": method,
            "status_code": str(status_code),
            "status": "success" if status_code < 400 else "error"
        }
        _api_request_counter.add(1, metric_attributes)
        _api_duration_histogram.record(duration, metric_attributes)

    except Exception as e:
        logger.debug(f"failed to record API metrics | error: {e}")


def record_grail_bytes_scanned(scanned_bytes: int, query_id: str = None):
    """Record the bytes one Grail query scanned."""
    if not _metrics_enabled or not _grail_bytes_scanned_counter:
        return

    try:
        attributes = {"query_id": query_id} if query_id else {}
        _grail_bytes_scanned_counter.add(scanned_bytes, attributes)
    except Exception as e:
        logger.debug(f"failed to record Grail metrics | error: {e}")


def record_error(error_type: str, operation: str, **attributes):
    """
    Record error occurrences.

    Args:
        error_type: Type/category of error
        operation: Operation where error occurred
        **attributes: Additional error context
    """
    if not _metrics_enabled or not _error_counter:
        return

    try:
        metric_attributes = {
            "error_type": error_type,
            "operation": operation
        }
        metric_attributes.update(_string_attributes("error", attributes))
        _error_counter.add(1, metric_attributes)

    except Exception as e:
        logger.debug(f"failed to record error metric | error: {e}")


class MetricsTimer:
    """Context manager timing one Dynatrace API request."""

    def __init__(self, path: str, method: str):
        self.path = path
        self.method = method
        self.status_code = None
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        duration = time.time() - self.start_time
        status_code = self.status_code
        if status_code is None:
            status_code = 500 if exc_type is not None else 200

        record_api_request(self.path, self.method, status_code, duration)
        if exc_type is not None:
            record_error(exc_type.__name__, f"{self.method} {self.path}")

    def set_status(self, status_code: int):
        self.status_code = status_code
