"""
Standardized logging setup for the Dynatrace MCP server.

Everything goes to stderr: stdout belongs to the stdio MCP transport.
Uses Python's built-in logging with session correlation.
"""

import logging
import sys
import os
from typing import Optional


class SessionFormatter(logging.Formatter):
    """Formatter with optional level colors and session/user context."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'RESET': '\033[0m'
    }

    def __init__(self, use_colors: bool = True):
        # timestamp - component [session] [user] - level - message
        super().__init__(
            fmt='%(asctime)s - %(name)s%(session_part)s%(user_part)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record):
        session = getattr(record, 'session', '')
        user = getattr(record, 'user', '')
        record.session_part = f" {session}" if session else ""
        record.user_part = f" {user}" if user else ""

        if not self.use_colors:
            return super().format(record)

        original_levelname = record.levelname
        level_color = self.COLORS.get(record.levelname, '')
        record.levelname = f"{level_color}{record.levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


# Get log level from environment variable, default to INFO
log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
log_level_value = getattr(logging, log_level, logging.INFO)

use_colors = os.getenv('LOG_COLORS', 'true').lower() in ('true', '1', 'yes', 'on')

# Third-party libraries (httpx, mcp, opentelemetry) only get warnings and errors,
# and only if nobody configured the root logger before us
if not logging.getLogger().handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('%(levelname)s:%(name)s:%(message)s'))
    logging.getLogger().addHandler(handler)
    logging.getLogger().setLevel(logging.WARNING)


class SessionContextFilter(logging.Filter):
    """Add session context to log records."""

    def __init__(self):
        super().__init__()
        self.session_id = None
        self.user_id = None

    def set_context(self, session_id: Optional[str] = None, user_id: Optional[str] = None):
        """Set session context for current request."""
        self.session_id = session_id
        self.user_id = user_id

    def filter(self, record):
        record.session = f"session:{self.session_id[:8]}..." if self.session_id else ""
        record.user = f"user:{self.user_id}" if self.user_id else ""
        return True


class SessionHandler(logging.StreamHandler):
    """stderr handler carrying the session-aware formatter."""

    def __init__(self, use_colors=True):
        super().__init__(sys.stderr)
        self.setFormatter(SessionFormatter(use_colors=use_colors))


# Global session context filter
session_filter = SessionContextFilter()


def get_logger(name: str) -> logging.Logger:
    """Get a component logger with session context and colored formatting."""
    logger = logging.getLogger(name)
    if session_filter not in logger.filters:
        logger.addFilter(session_filter)
        if not any(isinstance(h, SessionHandler) for h in logger.handlers):
            logger.addHandler(SessionHandler(use_colors=use_colors))
            logger.propagate = False
            logger.setLevel(log_level_value)
    return logger


def set_session_context(session_id: Optional[str] = None, user_id: Optional[str] = None):
    """Set session context for all loggers."""
    session_filter.set_context(session_id, user_id)


# Component-specific loggers
session_logger = get_logger('SESSION')
auth_logger = get_logger('AUTH')
dql_logger = get_logger('DQL')
budget_logger = get_logger('BUDGET')
http_logger = get_logger('HTTP')
tool_logger = get_logger('TOOLS')


def log_tool_call(tool_name: str, session_id: Optional[str] = None, **params):
    """Helper to log tool execution."""
    if session_id:
        set_session_context(session_id)
    extra_str = " | ".join(f"{k}:{str(v)[:50]}" for k, v in params.items() if v is not None)
    tool_logger.info(f"executing {tool_name} | {extra_str}" if extra_str else f"executing {tool_name}")
