"""
Dynatrace platform package

Grail query execution with session budget tracking, plus the platform
capabilities exposed by the MCP server.
"""

from .budget import (
    BudgetExceededError,
    BudgetState,
    GrailBudgetTracker,
    get_grail_budget_tracker,
    reset_grail_budget_tracker,
    create_grail_budget_tracker,
    format_bytes_as_gb,
    generate_budget_warning
)
from .client import DynatraceHttpClient, DynatraceAPIError, get_user_agent
from .auth import create_dt_http_client, OAuthTokenError
from .config import (
    DynatraceEnv,
    get_dynatrace_env,
    validate_dynatrace_config,
    get_sso_url,
    BASE_SCOPES,
    GRAIL_QUERY_SCOPES
)
from .dql import (
    DqlRequest,
    DqlExecutionResult,
    DqlVerification,
    ScanMetadata,
    QueryExecutionClient,
    execute_dql,
    verify_dql
)
from .entity_types import DYNATRACE_ENTITY_TYPES, get_entity_type_from_id
from .errors import format_tool_error, report_tool_errors

__all__ = [
    # Budget
    'BudgetExceededError',
    'BudgetState',
    'GrailBudgetTracker',
    'get_grail_budget_tracker',
    'reset_grail_budget_tracker',
    'create_grail_budget_tracker',
    'format_bytes_as_gb',
    'generate_budget_warning',

    # Client and authentication
    'DynatraceHttpClient',
    'DynatraceAPIError',
    'get_user_agent',
    'create_dt_http_client',
    'OAuthTokenError',

    # Configuration
    'DynatraceEnv',
    'get_dynatrace_env',
    'validate_dynatrace_config',
    'get_sso_url',
    'BASE_SCOPES',
    'GRAIL_QUERY_SCOPES',

    # Query execution
    'DqlRequest',
    'DqlExecutionResult',
    'DqlVerification',
    'ScanMetadata',
    'QueryExecutionClient',
    'execute_dql',
    'verify_dql',

    # Entities
    'DYNATRACE_ENTITY_TYPES',
    'get_entity_type_from_id',

    # Tool errors
    'format_tool_error',
    'report_tool_errors'
]
