"""
Dynatrace environment configuration

Reads and validates the environment variables the MCP server needs:
environment URL, credentials, Slack connection and the Grail query budget.
"""

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_GRAIL_BUDGET_GB = 1000.0
UNLIMITED_BUDGET = -1

DEFAULT_SLACK_CONNECTION_ID = 'fake-slack-connection-id'

# Scopes every client needs, e.g. for the environment information endpoint
BASE_SCOPES = [
    'app-engine:apps:run',
    'app-engine:functions:run',
]

GRAIL_QUERY_SCOPES = [
    'storage:buckets:read',
    'storage:logs:read',
    'storage:metrics:read',
    'storage:bizevents:read',
    'storage:spans:read',
    'storage:entities:read',
    'storage:events:read',
    'storage:system:read',
    'storage:user.events:read',
    'storage:user.sessions:read',
    'storage:security.events:read',
]


@dataclass(frozen=True)
class DynatraceEnv:
    dt_environment: str
    oauth_client_id: Optional[str] = None
    oauth_client_secret: Optional[str] = None
    dt_platform_token: Optional[str] = None
    slack_connection_id: str = DEFAULT_SLACK_CONNECTION_ID
    grail_budget_gb: float = DEFAULT_GRAIL_BUDGET_GB


def parse_grail_budget(raw: Optional[str]) -> float:
    """
    Parse DT_GRAIL_QUERY_BUDGET_GB.

    Returns the default (1000 GB) when unset, -1 for an unlimited budget.

    Raises:
        ValueError: For non-numeric values and non-positive values other than -1
    """
    if raw is None or raw.strip() == "":
        return DEFAULT_GRAIL_BUDGET_GB

    message = (
        'DT_GRAIL_QUERY_BUDGET_GB must be a positive number representing GB budget for Grail queries '
        '(or -1 for an unlimited budget)'
    )
    try:
        budget = float(raw)
    except ValueError:
        raise ValueError(message) from None

    if math.isnan(budget) or (budget <= 0 and budget != UNLIMITED_BUDGET):
        raise ValueError(message)
    return budget


def get_dynatrace_env(env: Optional[Mapping[str, str]] = None) -> DynatraceEnv:
    """
    Read and validate the Dynatrace environment variables.

    Args:
        env: Mapping to read from, defaults to os.environ

    Returns:
        Validated DynatraceEnv

    Raises:
        ValueError: If a required variable is missing or invalid
    """
    if env is None:
        env = os.environ

    oauth_client_id = env.get("OAUTH_CLIENT_ID") or None
    oauth_client_secret = env.get("OAUTH_CLIENT_SECRET") or None
    dt_platform_token = env.get("DT_PLATFORM_TOKEN") or None
    dt_environment = env.get("DT_ENVIRONMENT", "")
    slack_connection_id = env.get("SLACK_CONNECTION_ID") or DEFAULT_SLACK_CONNECTION_ID

    if not dt_environment:
        raise ValueError('Please set DT_ENVIRONMENT environment variable to your Dynatrace Platform Environment')

    if not oauth_client_id and not oauth_client_secret and not dt_platform_token:
        raise ValueError(
            'Please set either OAUTH_CLIENT_ID and OAUTH_CLIENT_SECRET, or DT_PLATFORM_TOKEN environment variables'
        )

    grail_budget_gb = parse_grail_budget(env.get("DT_GRAIL_QUERY_BUDGET_GB"))

    if not dt_environment.startswith('https://'):
        raise ValueError(
            'Please set DT_ENVIRONMENT to a valid Dynatrace Environment URL '
            '(e.g., https://<environment-id>.apps.dynatrace.com)'
        )

    if 'apps.dynatrace.com' not in dt_environment and 'apps.dynatracelabs.com' not in dt_environment:
        raise ValueError(
            'Please set DT_ENVIRONMENT to a valid Dynatrace Platform Environment URL '
            '(e.g., https://<environment-id>.apps.dynatrace.com)'
        )

    return DynatraceEnv(
        dt_environment=dt_environment.rstrip('/'),
        oauth_client_id=oauth_client_id,
        oauth_client_secret=oauth_client_secret,
        dt_platform_token=dt_platform_token,
        slack_connection_id=slack_connection_id,
        grail_budget_gb=grail_budget_gb,
    )


def validate_dynatrace_config(env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Validate the Dynatrace configuration.

    Returns:
        Error message if configuration is invalid, None if valid
    """
    try:
        get_dynatrace_env(env)
    except ValueError as e:
        return f"Error: {e}"
    return None


def get_sso_url(environment_url: str, env: Optional[Mapping[str, str]] = None) -> str:
    """
    Get the SSO base URL used for the OAuth client-credentials flow.

    DT_SSO_URL wins; otherwise the URL follows the environment's domain.
    """
    if env is None:
        env = os.environ

    override = env.get("DT_SSO_URL")
    if override:
        return override.rstrip('/')

    if 'dynatracelabs.com' in environment_url:
        return 'https://sso.dynatracelabs.com'
    return 'https://sso.dynatrace.com'
