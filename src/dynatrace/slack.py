"""
Slack messages through the Dynatrace Slack Connector app
"""

from datetime import datetime, timezone
from typing import Any, Dict

from src.logging import get_logger

from .client import DynatraceHttpClient

logger = get_logger('SLACK')

SLACK_APP_ID = "dynatrace.slack"
SLACK_SEND_MESSAGE_FUNCTION = "slack-send-message"


async def send_slack_message(
    client: DynatraceHttpClient,
    connection_id: str,
    channel: str,
    message: str
) -> Dict[str, Any]:
    """
    Post a message to a Slack channel via the connector's app function.

    Args:
        client: Dynatrace HTTP client with app-settings:objects:read
        connection_id: Slack connection configured in the Slack Connector app
        channel: Channel name or ID
        message: Message text (Slack markdown)
    """
    logger.info(f"sending slack message | channel:{channel} | connection:{connection_id}")
    return await client.request(
        method="POST",
        path=f"/platform/app-engine/app-functions/v1/apps/{SLACK_APP_ID}/api/{SLACK_SEND_MESSAGE_FUNCTION}",
        json_data={
            "message": message,
            "channel": channel,
            "connection": connection_id,
            # the app function expects workflow context, which does not exist here
            "workflowID": "dynatrace-mcp-server",
            "executionID": "dynatrace-mcp-server",
            "executionDate": datetime.now(timezone.utc).isoformat(),
            "appendToThread": False,
        }
    )
