"""
Logging utilities for the Dynatrace MCP server.
"""

from .mcp_logger import (
    get_logger,
    set_session_context,
    log_tool_call,
    session_logger,
    auth_logger,
    dql_logger,
    budget_logger,
    http_logger,
    tool_logger
)

__all__ = [
    'get_logger',
    'set_session_context',
    'log_tool_call',
    'session_logger',
    'auth_logger',
    'dql_logger',
    'budget_logger',
    'http_logger',
    'tool_logger'
]
