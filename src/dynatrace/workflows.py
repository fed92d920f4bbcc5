"""
Automation workflows

Creates problem notification workflows and updates existing workflows.
"""

from typing import Any, Dict, Optional

from src.logging import get_logger

from .client import DynatraceHttpClient

logger = get_logger('WORKFLOWS')

WORKFLOWS_API = "/platform/automation/v1/workflows"


def build_problem_notification_workflow(
    team_name: Optional[str],
    channel: Optional[str],
    problem_type: Optional[str],
    is_private: bool = False
) -> Dict[str, Any]:
    """Workflow definition that posts to Slack whenever a matching Davis problem opens."""
    filter_query = (
        'event.kind == "DAVIS_PROBLEM" AND event.status == "ACTIVE" AND '
        '(event.status_transition == "CREATED" OR event.status_transition == "UPDATED" '
        'OR event.status_transition == "REOPENED")'
    )
    if problem_type:
        filter_query += f' AND (event.category == "{problem_type}")'

    return {
        "title": f"[MCP POC] Notify team {team_name} on problem of type {problem_type}",
        "description": "Automatically created workflow from the Dynatrace MCP server",
        "isPrivate": is_private,
        "trigger": {
            "eventTrigger": {
                "isActive": True,
                "filterQuery": filter_query,
                "triggerConfiguration": {
                    "type": "davis-problem",
                    "value": {
                        "categories": {problem_type.lower(): True} if problem_type else {},
                        "onProblemClose": False,
                    },
                },
            },
        },
        "tasks": {
            "send_notification": {
                "name": "send_notification",
                "action": "dynatrace.slack:slack-send-message",
                "description": "Send a message to a Slack workspace",
                "input": {
                    "connection": "",
                    "channel": channel,
                    "message": (
                        "Hello team {{ event()['dt.owner'] }}, problem "
                        "{{ event()['display_id'] }} of type " + str(problem_type) +
                        " is open: {{ event()['event.name'] }}"
                    ),
                },
                "active": True,
                "position": {"x": 0, "y": 1},
            },
        },
    }


async def create_workflow_for_problem_notification(
    client: DynatraceHttpClient,
    team_name: Optional[str],
    channel: Optional[str],
    problem_type: Optional[str],
    is_private: bool = False
) -> Dict[str, Any]:
    """
    Create a notification workflow for a team.

    Returns:
        The created workflow (id, title, type, ...)
    """
    workflow = await client.request(
        method="POST",
        path=WORKFLOWS_API,
        json_data=build_problem_notification_workflow(team_name, channel, problem_type, is_private),
        expected_status=(200, 201)
    )
    logger.info(f"workflow created | id:{(workflow or {}).get('id')} | private:{is_private}")
    return workflow


async def update_workflow(client: DynatraceHttpClient, workflow_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a partial update (e.g. {"isPrivate": False}) to a workflow."""
    workflow = await client.request(
        method="PATCH",
        path=f"{WORKFLOWS_API}/{workflow_id}",
        json_data=changes
    )
    logger.info(f"workflow updated | id:{workflow_id} | fields:{', '.join(changes)}")
    return workflow
