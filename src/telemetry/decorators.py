"""
OpenTelemetry decorators for instrumenting MCP server operations

Provides tracing for MCP tools and Dynatrace platform API calls. Both
decorators are transparent when telemetry is not initialized.
"""

import functools
import inspect
import time
from typing import Callable, Optional
from src.logging import get_logger

logger = get_logger('TELEMETRY_DECORATORS')

# Parameter names never recorded verbatim on spans
SENSITIVE_PARAMS = {
    'token', 'password', 'secret', 'key', 'auth', 'authorization',
    'access_token', 'client_secret', 'platform_token', 'dt_platform_token'
}


def trace_mcp_tool(tool_name: Optional[str] = None,
                   record_args: bool = True,
                   record_result: bool = False):
    """
    Decorator to trace MCP tool execution.

    Args:
        tool_name: Custom span name (defaults to mcp_tool.<function name>)
        record_args: Whether to record function arguments as span attributes
        record_result: Whether to record the result as a span attribute
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            from .config import get_tracer
            from .metrics import record_tool_invocation

            start_time = time.time()
            success = True
            attributes = {}
            if 'dql_statement' in kwargs:
                attributes['query_length'] = len(str(kwargs['dql_statement']))

            try:
                tracer = get_tracer()
                if not tracer:
                    return await func(*args, **kwargs)

                from opentelemetry import trace

                with tracer.start_as_current_span(tool_name or f"mcp_tool.{func.__name__}") as span:
                    span.set_attribute("mcp.tool.name", func.__name__)
                    span.set_attribute("mcp.operation.type", "tool_execution")
                    if record_args:
                        _record_function_args(span, func, args, kwargs)

                    try:
                        result = await func(*args, **kwargs)
                    except Exception as e:
                        span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                        span.record_exception(e)
                        span.set_attribute("mcp.tool.error", True)
                        span.set_attribute("mcp.tool.error_type", type(e).__name__)
                        status_code = getattr(e, 'status_code', None)
                        if status_code is not None:
                            span.set_attribute("mcp.api.error_status", status_code)
                        raise

                    if record_result and result is not None:
                        result_str = str(result)
                        if len(result_str) <= 1000:
                            span.set_attribute("mcp.tool.result", result_str)
                        else:
                            span.set_attribute("mcp.tool.result_size", len(result_str))

                    span.set_status(trace.Status(trace.StatusCode.OK))
                    return result

            except Exception:
                success = False
                raise
            finally:
                record_tool_invocation(func.__name__, time.time() - start_time, success, **attributes)

        return wrapper
    return decorator


def trace_dynatrace_api_call(operation: Optional[str] = None):
    """
    Decorator to trace Dynatrace platform API calls.

    Args:
        operation: Description of the API operation
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            from .config import get_tracer

            tracer = get_tracer()
            if not tracer:
                return await func(*args, **kwargs)

            from opentelemetry import trace

            with tracer.start_as_current_span(f"dynatrace_api.{operation or func.__name__}") as span:
                span.set_attribute("dynatrace.operation.type", "api_call")
                span.set_attribute("dynatrace.function.name", func.__name__)
                if operation:
                    span.set_attribute("dynatrace.operation.name", operation)
                if 'path' in kwargs:
                    span.set_attribute("dynatrace.api.path", kwargs['path'])
                if 'method' in kwargs:
                    span.set_attribute("dynatrace.api.method", kwargs['method'])

                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    span.set_attribute("dynatrace.api.error", True)
                    span.set_attribute("dynatrace.api.error_type", type(e).__name__)
                    status_code = getattr(e, 'status_code', None)
                    if status_code is not None:
                        span.set_attribute("dynatrace.api.status_code", status_code)
                    raise

                span.set_status(trace.Status(trace.StatusCode.OK))
                return result

        return wrapper
    return decorator


def _record_function_args(span, func: Callable, args: tuple, kwargs: dict):
    """
    Record function arguments as span attributes with sensitive data filtering.
    """
    try:
        bound_args = inspect.signature(func).bind_partial(*args, **kwargs)
        bound_args.apply_defaults()

        for param_name, value in bound_args.arguments.items():
            if param_name.lower() in SENSITIVE_PARAMS:
                span.set_attribute(f"mcp.args.{param_name}", "[REDACTED]")
            elif param_name == 'ctx':
                session_id = getattr(value, 'session_id', None)
                if session_id:
                    span.set_attribute("mcp.session.id", str(session_id))
            else:
                value_str = str(value)
                if len(value_str) <= 200:
                    span.set_attribute(f"mcp.args.{param_name}", value_str)
                else:
                    span.set_attribute(f"mcp.args.{param_name}_size", len(value_str))

    except Exception as e:
        logger.debug(f"failed to record function args | error: {e}")
