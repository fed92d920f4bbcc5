"""
Davis CoPilot

Natural language to DQL, DQL explanations and free-form conversations.
The Davis CoPilot APIs are in preview.
"""

from typing import Any, Dict, List, Optional

from .client import DynatraceHttpClient

COPILOT_API = "/platform/davis/copilot/v0"


async def generate_dql_from_natural_language(client: DynatraceHttpClient, text: str) -> Dict[str, Any]:
    """Returns dql, status, messageToken and metadata.notifications."""
    return await client.request(
        method="POST",
        path=f"{COPILOT_API}/skills/nl2dql:generate",
        json_data={"text": text}
    )


async def explain_dql_in_natural_language(client: DynatraceHttpClient, dql: str) -> Dict[str, Any]:
    """Returns summary, explanation, status, messageToken and metadata.notifications."""
    return await client.request(
        method="POST",
        path=f"{COPILOT_API}/skills/dql2nl:explain",
        json_data={"dql": dql}
    )


async def chat_with_davis_copilot(
    client: DynatraceHttpClient,
    text: str,
    context: Optional[List[Dict[str, str]]] = None,
    annotations: Optional[Dict[str, str]] = None,
    state: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Send one conversation message to Davis CoPilot.

    Args:
        text: The question
        context: Items like {"type": "supplementary" | "instruction", "value": "..."}
        annotations: Free-form annotations
        state: Conversation state of a previous answer, to continue it

    Raises:
        RuntimeError: If the API answers with a streamed event list
    """
    body: Dict[str, Any] = {"text": text}
    if context:
        body["context"] = context
    if annotations:
        body["annotations"] = annotations
    if state:
        body["state"] = state

    response = await client.request(
        method="POST",
        path=f"{COPILOT_API}/skills/conversations:message",
        json_data=body
    )

    if isinstance(response, list):
        raise RuntimeError(
            'Unexpected streaming response format. '
            'Please raise an issue at https://github.com/dynatrace-oss/dynatrace-mcp/issues.'
        )
    return response
