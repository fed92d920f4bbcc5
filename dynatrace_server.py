#!/usr/bin/env python3
"""
Dynatrace MCP Server
A Model Context Protocol server that exposes Dynatrace platform operations
(Grail DQL queries, entities, problems, vulnerabilities, notifications and
Davis CoPilot) as tools, with a per-session Grail query budget.
"""

import json
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

# Initialize OpenTelemetry instrumentation early
from src.dynatrace.version import __version__
from src.telemetry import initialize_telemetry, initialize_metrics, trace_mcp_tool
telemetry_enabled = initialize_telemetry(service_version=__version__)

if telemetry_enabled:
    metrics_enabled = initialize_metrics()
else:
    metrics_enabled = False

from fastmcp import Context, FastMCP

from src.dynatrace import (
    BASE_SCOPES,
    GRAIL_QUERY_SCOPES,
    DqlRequest,
    DynatraceEnv,
    DynatraceHttpClient,
    GrailBudgetTracker,
    create_dt_http_client,
    execute_dql as dynatrace_execute_dql,
    get_dynatrace_env,
    get_grail_budget_tracker,
    report_tool_errors,
    verify_dql as dynatrace_verify_dql,
)
from src.dynatrace import davis_copilot, formatting
from src.dynatrace.email import EmailBody, EmailRecipients, EmailRequest, send_email as dynatrace_send_email
from src.dynatrace.entities import (
    entity_details_link,
    find_monitored_entity_by_name,
    get_monitored_entity_details,
)
from src.dynatrace.environment import get_environment_info as dynatrace_environment_info
from src.dynatrace.events import get_events_for_cluster, get_logs_for_entity as dynatrace_logs_for_entity
from src.dynatrace.ownership import get_ownership_information
from src.dynatrace.problems import get_problem_details as dynatrace_problem_details, list_problems as dynatrace_list_problems
from src.dynatrace.slack import send_slack_message as dynatrace_send_slack_message
from src.dynatrace.vulnerabilities import (
    get_vulnerability_details as dynatrace_vulnerability_details,
    list_vulnerabilities as dynatrace_list_vulnerabilities,
)
from src.dynatrace.workflows import create_workflow_for_problem_notification, update_workflow
from src.logging import log_tool_call, session_logger, set_session_context

WORKFLOW_SCOPES = ['automation:workflows:write', 'automation:workflows:read', 'automation:workflows:run']

mcp = FastMCP(name="dynatrace-mcp-server")

_dynatrace_env: Optional[DynatraceEnv] = None


def dynatrace_env() -> DynatraceEnv:
    """Environment configuration, read once per process."""
    global _dynatrace_env
    if _dynatrace_env is None:
        _dynatrace_env = get_dynatrace_env()
    return _dynatrace_env


def session_budget_tracker() -> GrailBudgetTracker:
    """The Grail budget tracker of this server session."""
    return get_grail_budget_tracker(dynatrace_env().grail_budget_gb)


async def dynatrace_client(extra_scopes: Optional[List[str]] = None) -> DynatraceHttpClient:
    env = dynatrace_env()
    return await create_dt_http_client(
        env.dt_environment,
        BASE_SCOPES + (extra_scopes or []),
        client_id=env.oauth_client_id,
        client_secret=env.oauth_client_secret,
        platform_token=env.dt_platform_token,
    )


def _start_tool(ctx: Optional[Context], tool_name: str, **params):
    session_id = getattr(ctx, 'session_id', None) if ctx else None
    if session_id:
        set_session_context(session_id)
    log_tool_call(tool_name, session_id, **params)


@mcp.tool()
@trace_mcp_tool(tool_name="get_environment_info")
@report_tool_errors
async def get_environment_info(ctx: Context) -> str:
    """Get information about the connected Dynatrace Environment (Tenant)"""
    _start_tool(ctx, "get_environment_info")
    client = await dynatrace_client()
    environment_info = await dynatrace_environment_info(client)

    resp = f"Environment Information (also referred to as tenant):\n{json.dumps(environment_info)}\n"
    resp += f"You can reach it via {dynatrace_env().dt_environment}\n"
    return resp


@mcp.tool()
@trace_mcp_tool(tool_name="list_vulnerabilities")
@report_tool_errors
async def list_vulnerabilities(
    ctx: Context,
    risk_score: Optional[float] = None,
    additional_filter: Optional[str] = None
) -> str:
    """
    List open vulnerabilities from Dynatrace, sorted by risk score.

    Args:
        risk_score: Minimum risk score (default 8.0)
        additional_filter: Additional DQL filter, e.g. vulnerability.references.cve == "CVE-2023-1234"
    """
    _start_tool(ctx, "list_vulnerabilities", risk_score=risk_score, additional_filter=additional_filter)
    client = await dynatrace_client(GRAIL_QUERY_SCOPES)
    result = await dynatrace_list_vulnerabilities(
        client,
        additional_filter=additional_filter,
        risk_score=risk_score,
        budget_tracker=session_budget_tracker()
    )
    if not result:
        return 'No vulnerabilities found'

    resp = 'Found the following vulnerabilities:'
    for vulnerability in result:
        resp += f"\n* {vulnerability}"
    resp += (
        f"\nWe recommend to take a look at {dynatrace_env().dt_environment}"
        "/ui/apps/dynatrace.security.vulnerabilities to get a better overview of vulnerabilities.\n"
    )
    return resp


@mcp.tool()
@trace_mcp_tool(tool_name="get_vulnerability_details")
@report_tool_errors
async def get_vulnerability_details(ctx: Context, security_problem_id: str) -> str:
    """Get details of a vulnerability by `securityProblemId` on Dynatrace"""
    _start_tool(ctx, "get_vulnerability_details", security_problem_id=security_problem_id)
    client = await dynatrace_client(['environment-api:security-problems:read'])
    details = await dynatrace_vulnerability_details(client, security_problem_id) or {}
    return formatting.format_vulnerability_details(details, dynatrace_env().dt_environment)


@mcp.tool()
@trace_mcp_tool(tool_name="list_problems")
@report_tool_errors
async def list_problems(ctx: Context, additional_filter: Optional[str] = None) -> str:
    """
    List Davis problems of the last 12 hours.

    Args:
        additional_filter: Additional DQL filter, e.g. event.status == "ACTIVE"
    """
    _start_tool(ctx, "list_problems", additional_filter=additional_filter)
    client = await dynatrace_client(GRAIL_QUERY_SCOPES)
    result = await dynatrace_list_problems(
        client,
        additional_filter=additional_filter,
        budget_tracker=session_budget_tracker()
    )
    records = result.records if result else []
    resp = formatting.format_problems(records)
    if result and result.budget_warning:
        resp += f"\n\n{result.budget_warning}"
    return resp


@mcp.tool()
@trace_mcp_tool(tool_name="get_problem_details")
@report_tool_errors
async def get_problem_details(ctx: Context, problem_id: str) -> str:
    """Get details of a problem on Dynatrace"""
    _start_tool(ctx, "get_problem_details", problem_id=problem_id)
    client = await dynatrace_client(['environment-api:problems:read'])
    details = await dynatrace_problem_details(client, problem_id) or {}
    return formatting.format_problem_details(details, dynatrace_env().dt_environment)


@mcp.tool()
@trace_mcp_tool(tool_name="find_entity_by_name")
@report_tool_errors
async def find_entity_by_name(ctx: Context, entity_name: str) -> str:
    """Get the entityId of a monitored entity based on the name of the entity on Dynatrace"""
    _start_tool(ctx, "find_entity_by_name", entity_name=entity_name)
    client = await dynatrace_client(['environment-api:entities:read', 'storage:entities:read'])
    return await find_monitored_entity_by_name(client, entity_name, budget_tracker=session_budget_tracker())


@mcp.tool()
@trace_mcp_tool(tool_name="get_entity_details")
@report_tool_errors
async def get_entity_details(ctx: Context, entity_id: str) -> str:
    """Get details of a monitored entity based on the entityId on Dynatrace"""
    _start_tool(ctx, "get_entity_details", entity_id=entity_id)
    client = await dynatrace_client(['environment-api:entities:read'])
    details = await get_monitored_entity_details(client, entity_id) or {}

    resp = (
        f"Entity {details.get('displayName')} of type {details.get('type')} "
        f"with `entityId` {details.get('entityId')}\n"
        f"Properties: {json.dumps(details.get('properties'))}\n"
    )
    link = entity_details_link(dynatrace_env().dt_environment, details.get('type'), details.get('entityId'))
    if link:
        resp += f"You can find more information at {link}"
    return resp


@mcp.tool()
@trace_mcp_tool(tool_name="send_slack_message")
@report_tool_errors
async def send_slack_message(ctx: Context, channel: str, message: str) -> str:
    """Sends a Slack message to a dedicated Slack Channel via Slack Connector on Dynatrace"""
    _start_tool(ctx, "send_slack_message", channel=channel)
    client = await dynatrace_client(['app-settings:objects:read'])
    response = await dynatrace_send_slack_message(client, dynatrace_env().slack_connection_id, channel, message)
    return f"Message sent to Slack channel: {json.dumps(response)}"


@mcp.tool()
@trace_mcp_tool(tool_name="get_logs_for_entity")
@report_tool_errors
async def get_logs_for_entity(ctx: Context, entity_name: str) -> str:
    """Get Logs for a monitored entity based on name of the entity on Dynatrace"""
    _start_tool(ctx, "get_logs_for_entity", entity_name=entity_name)
    client = await dynatrace_client(['storage:logs:read'])
    logs = await dynatrace_logs_for_entity(client, entity_name, budget_tracker=session_budget_tracker())
    contents = None if logs is None else [line.get('content') if line else 'Empty log' for line in logs]
    return formatting.format_records("Logs", contents)


@mcp.tool()
@trace_mcp_tool(tool_name="verify_dql")
@report_tool_errors
async def verify_dql(ctx: Context, dql_statement: str) -> str:
    """
    Verify a Dynatrace Query Language (DQL) statement on Dynatrace GRAIL before executing it.
    This is useful to ensure that the DQL statement is valid and can be executed without errors.
    """
    _start_tool(ctx, "verify_dql", dql_statement=dql_statement)
    client = await dynatrace_client()
    verification = await dynatrace_verify_dql(client, dql_statement)
    return formatting.format_dql_verification(verification)


@mcp.tool()
@trace_mcp_tool(tool_name="execute_dql")
@report_tool_errors
async def execute_dql(
    ctx: Context,
    dql_statement: str,
    max_result_records: Optional[int] = None,
    max_result_bytes: Optional[int] = None
) -> str:
    """
    Get Logs, Metrics, Spans or Events from Dynatrace GRAIL by executing a Dynatrace Query Language (DQL) statement.

    Always use the "verify_dql" tool before you execute a DQL statement. A valid statement looks like this:
    "fetch [logs, metrics, spans, events] | filter <some-filter> | summarize count(), by:{some-fields}".
    Adapt filters for certain attributes: `traceId` could be `trace_id` or `trace.id`.

    Every query counts against the Grail budget of this session (DT_GRAIL_QUERY_BUDGET_GB).
    Once the budget is used up, further queries are rejected.

    Args:
        dql_statement: The DQL statement to execute
        max_result_records: Optional limit for the number of returned records
        max_result_bytes: Optional limit for the size of the result in bytes
    """
    _start_tool(ctx, "execute_dql", dql_statement=dql_statement)
    client = await dynatrace_client(GRAIL_QUERY_SCOPES)
    result = await dynatrace_execute_dql(
        client,
        DqlRequest(
            query=dql_statement,
            max_result_records=max_result_records,
            max_result_bytes=max_result_bytes
        ),
        budget_tracker=session_budget_tracker()
    )
    return formatting.format_dql_result(result)


@mcp.tool()
@trace_mcp_tool(tool_name="generate_dql_from_natural_language")
@report_tool_errors
async def generate_dql_from_natural_language(ctx: Context, text: str) -> str:
    """
    Convert natural language queries to Dynatrace Query Language (DQL) using Davis CoPilot AI.

    You can ask for problem events, security issues, logs, metrics, spans, and custom data.
    Workflow: 1) Generate DQL, 2) Verify with verify_dql tool, 3) Execute with execute_dql tool,
    4) Iterate if results don't match expectations.

    Args:
        text: Natural language description of what you want to query. Be specific and include
            time ranges, entities, and metrics of interest.
    """
    _start_tool(ctx, "generate_dql_from_natural_language", text=text)
    client = await dynatrace_client(['davis-copilot:nl2dql:execute'])
    response = await davis_copilot.generate_dql_from_natural_language(client, text)
    return formatting.format_nl2dql(text, response or {})


@mcp.tool()
@trace_mcp_tool(tool_name="explain_dql_in_natural_language")
@report_tool_errors
async def explain_dql_in_natural_language(ctx: Context, dql: str) -> str:
    """Explain Dynatrace Query Language (DQL) statements in natural language using Davis CoPilot AI."""
    _start_tool(ctx, "explain_dql_in_natural_language", dql=dql)
    client = await dynatrace_client(['davis-copilot:dql2nl:execute'])
    response = await davis_copilot.explain_dql_in_natural_language(client, dql)
    return formatting.format_dql2nl(dql, response or {})


@mcp.tool()
@trace_mcp_tool(tool_name="chat_with_davis_copilot")
@report_tool_errors
async def chat_with_davis_copilot(
    ctx: Context,
    text: str,
    context: Optional[str] = None,
    instruction: Optional[str] = None
) -> str:
    """
    Use this tool in case no specific tool is available. Get an answer to any Dynatrace related
    question as well as troubleshooting, and guidance.
    (Note: Davis CoPilot AI is GA, but the Davis CoPilot APIs are in preview)

    Args:
        text: Your question or request for Davis CoPilot
        context: Optional context to provide additional information
        instruction: Optional instruction for how to format the response
    """
    _start_tool(ctx, "chat_with_davis_copilot", text=text)
    client = await dynatrace_client(['davis-copilot:conversations:execute'])

    conversation_context = []
    if context:
        conversation_context.append({'type': 'supplementary', 'value': context})
    if instruction:
        conversation_context.append({'type': 'instruction', 'value': instruction})

    response = await davis_copilot.chat_with_davis_copilot(client, text, conversation_context)
    return formatting.format_copilot_answer(text, response or {})


@mcp.tool()
@trace_mcp_tool(tool_name="create_workflow_for_notification")
@report_tool_errors
async def create_workflow_for_notification(
    ctx: Context,
    problem_type: Optional[str] = None,
    team_name: Optional[str] = None,
    channel: Optional[str] = None,
    is_private: bool = False
) -> str:
    """Create a notification for a team based on a problem type within Workflows in Dynatrace"""
    _start_tool(ctx, "create_workflow_for_notification", problem_type=problem_type, team_name=team_name)
    client = await dynatrace_client(WORKFLOW_SCOPES)
    workflow = await create_workflow_for_problem_notification(client, team_name, channel, problem_type, is_private) or {}

    environment_url = dynatrace_env().dt_environment
    resp = (
        f"Workflow Created: {workflow.get('id')} with name {workflow.get('title')}.\n"
        f"You can access the Workflow via the following link: "
        f"{environment_url}/ui/apps/dynatrace.automations/workflows/{workflow.get('id')}.\n"
        "Tell the user to inspect the Workflow by visiting the link.\n"
    )
    if workflow.get('type') == 'SIMPLE':
        resp += 'Note: This is a simple workflow. Workflow-hours will not be billed.\n'
    elif workflow.get('type') == 'STANDARD':
        resp += 'Note: This is a standard workflow. Workflow-hours will be billed.\n'

    if is_private:
        resp += (
            'This workflow is private and can only be accessed by the owner of the authentication credentials. '
            'In case you can not access it, you can instruct me to make the workflow public.'
        )
    return resp


@mcp.tool()
@trace_mcp_tool(tool_name="make_workflow_public")
@report_tool_errors
async def make_workflow_public(ctx: Context, workflow_id: str) -> str:
    """Modify a workflow and make it publicly available to everyone on the Dynatrace Environment"""
    _start_tool(ctx, "make_workflow_public", workflow_id=workflow_id)
    client = await dynatrace_client(WORKFLOW_SCOPES)
    workflow = await update_workflow(client, workflow_id, {'isPrivate': False}) or {}

    return (
        f"Workflow {workflow.get('id')} is now public!\n"
        f"You can access the Workflow via the following link: "
        f"{dynatrace_env().dt_environment}/ui/apps/dynatrace.automations/workflows/{workflow.get('id')}.\n"
        "Tell the user to inspect the Workflow by visiting the link.\n"
    )


@mcp.tool()
@trace_mcp_tool(tool_name="get_kubernetes_events")
@report_tool_errors
async def get_kubernetes_events(ctx: Context, cluster_id: str) -> str:
    """
    Get all events from a specific Kubernetes (K8s) cluster

    Args:
        cluster_id: The Kubernetes (K8s) Cluster Id, referred to as k8s.cluster.uid
            (this is NOT the Dynatrace environment)
    """
    _start_tool(ctx, "get_kubernetes_events", cluster_id=cluster_id)
    client = await dynatrace_client(['storage:events:read'])
    events = await get_events_for_cluster(client, cluster_id, budget_tracker=session_budget_tracker())
    return formatting.format_records("Kubernetes Events", events)


@mcp.tool()
@trace_mcp_tool(tool_name="get_ownership")
@report_tool_errors
async def get_ownership(ctx: Context, entity_ids: str) -> str:
    """
    Get detailed Ownership information for one or multiple entities on Dynatrace

    Args:
        entity_ids: Comma separated list of entityIds
    """
    _start_tool(ctx, "get_ownership", entity_ids=entity_ids)
    client = await dynatrace_client(['environment-api:entities:read', 'settings:objects:read'])
    ownership = await get_ownership_information(client, entity_ids)
    return f"Ownership information:\n{json.dumps(ownership)}"


@mcp.tool()
@trace_mcp_tool(tool_name="send_email")
@report_tool_errors
async def send_email(
    ctx: Context,
    to_recipients: List[str],
    subject: str,
    body: str,
    cc_recipients: Optional[List[str]] = None,
    bcc_recipients: Optional[List[str]] = None
) -> str:
    """
    Send a plain text email using the Dynatrace Email API.

    At most 10 recipients in total across TO, CC and BCC.

    Args:
        to_recipients: Email addresses of the primary recipients
        subject: Subject line
        body: Plain text body
        cc_recipients: Optional CC addresses
        bcc_recipients: Optional BCC addresses
    """
    _start_tool(ctx, "send_email", subject=subject, recipients=len(to_recipients))
    client = await dynatrace_client(['email:emails:send'])
    request = EmailRequest(
        to_recipients=EmailRecipients(email_addresses=to_recipients),
        cc_recipients=EmailRecipients(email_addresses=cc_recipients) if cc_recipients else None,
        bcc_recipients=EmailRecipients(email_addresses=bcc_recipients) if bcc_recipients else None,
        subject=subject,
        body=EmailBody(body=body),
    )
    result = await dynatrace_send_email(client, request)

    resp = f"Email send request accepted. Request ID: {result.request_id}\n"
    resp += f"Message: {result.message}\n"
    if result.invalid_destinations:
        resp += f"Invalid destinations: {', '.join(result.invalid_destinations)}\n"
    if result.bouncing_destinations:
        resp += f"Bouncing destinations: {', '.join(result.bouncing_destinations)}\n"
    if result.complaining_destinations:
        resp += f"Complaining destinations: {', '.join(result.complaining_destinations)}\n"
    return resp


if __name__ == "__main__":
    import signal
    import atexit

    try:
        env = dynatrace_env()
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    session_logger.info(f"initializing Dynatrace MCP Server v{__version__} | environment:{env.dt_environment}")
    tracker = session_budget_tracker()
    session_logger.info(f"grail budget | limit_gb:{tracker.budget_limit_gb}")

    # Register shutdown handler for telemetry
    def shutdown_handler():
        if telemetry_enabled:
            from src.telemetry.config import shutdown_telemetry
            shutdown_telemetry()

    atexit.register(shutdown_handler)
    signal.signal(signal.SIGTERM, lambda signum, frame: shutdown_handler())
    signal.signal(signal.SIGINT, lambda signum, frame: shutdown_handler())

    transport = os.getenv("DT_MCP_TRANSPORT", "stdio")
    if transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(
            transport=transport,
            host=os.getenv("DT_MCP_HOST", "0.0.0.0"),
            port=int(os.getenv("DT_MCP_PORT", "8000"))
        )
