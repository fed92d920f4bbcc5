"""
Error reporting for MCP tools

Tool failures are returned to the MCP client as error results carrying a
readable message instead of a stack trace.
"""

import functools
import json
from typing import Callable

from fastmcp.exceptions import ToolError

from src.logging import get_logger
from src.telemetry import record_error

from .client import DynatraceAPIError

logger = get_logger('TOOLS')

PERMISSION_HINT = (
    'Note: Your user or service-user is most likely lacking the necessary permissions/scopes for this API Call.'
)


def format_tool_error(error: BaseException) -> str:
    """
    Render an exception raised by a tool as user-facing text.

    Dynatrace API errors carry status and body; a 403 additionally gets a
    hint about missing scopes.
    """
    if isinstance(error, DynatraceAPIError) and error.status_code is not None:
        hint = PERMISSION_HINT if error.status_code == 403 else ''
        try:
            body = json.dumps(error.body)
        except (TypeError, ValueError):
            body = str(error.body)
        return f"Client Request Error: {error} with HTTP status: {error.status_code}. {hint} (body: {body})"
    return f"Error: {error}"


def report_tool_errors(func: Callable) -> Callable:
    """Convert any exception of an async tool into a ToolError with formatted text."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except ToolError:
            raise
        except Exception as e:
            logger.error(f"tool failed | tool:{func.__name__} | error_type:{type(e).__name__} | error:{e}")
            record_error(type(e).__name__, func.__name__)
            raise ToolError(format_tool_error(e)) from e

    return wrapper
