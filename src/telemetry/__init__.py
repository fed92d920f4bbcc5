"""
OpenTelemetry instrumentation package for the Dynatrace MCP server

Provides centralized configuration and initialization for OpenTelemetry
tracing and metrics across the MCP server application.
"""

from .config import (
    initialize_telemetry,
    get_tracer,
    get_meter,
    shutdown_telemetry,
    is_telemetry_enabled,
    is_telemetry_initialized
)

from .decorators import (
    trace_mcp_tool,
    trace_dynatrace_api_call
)

from .metrics import (
    initialize_metrics,
    record_tool_invocation,
    record_api_request,
    record_grail_bytes_scanned,
    record_error,
    MetricsTimer
)

__all__ = [
    # Core configuration
    'initialize_telemetry',
    'get_tracer',
    'get_meter',
    'shutdown_telemetry',
    'is_telemetry_enabled',
    'is_telemetry_initialized',

    # Decorators
    'trace_mcp_tool',
    'trace_dynatrace_api_call',

    # Metrics
    'initialize_metrics',
    'record_tool_invocation',
    'record_api_request',
    'record_grail_bytes_scanned',
    'record_error',
    'MetricsTimer'
]
