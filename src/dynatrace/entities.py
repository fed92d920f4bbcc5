"""
Monitored entity lookups

Finds entities by name with a DQL search over every entity type, and reads
entity details from the classic environment API.
"""

from typing import Any, Dict, Optional

from src.logging import get_logger

from .budget import GrailBudgetTracker
from .client import DynatraceHttpClient
from .dql import escape_dql_string, execute_dql
from .entity_types import DYNATRACE_ENTITY_TYPES

logger = get_logger('ENTITIES')


def generate_dql_search_entity_command(entity_name: str) -> str:
    """
    Build one DQL statement searching entity_name in all entity types.

    The first type is fetched directly, every further type is added with
    "| append [ ... ]".
    """
    search_term = escape_dql_string(entity_name)
    commands = []
    for index, entity_type in enumerate(DYNATRACE_ENTITY_TYPES):
        dql = f'fetch {entity_type} | search "*{search_term}*" | fieldsAdd entity.type'
        commands.append(dql if index == 0 else f"  | append [ {dql} ]\n")
    return "".join(commands)


async def find_monitored_entity_by_name(
    client: DynatraceHttpClient,
    entity_name: str,
    budget_tracker: Optional[GrailBudgetTracker] = None
) -> str:
    """
    Find monitored entities whose name contains entity_name.

    Returns:
        Text listing id, name and type of every match, or a hint if nothing matched
    """
    if not entity_name:
        return 'You need to provide an entity name to search for.'

    # slow: one fetch per entity type
    response = await execute_dql(
        client,
        generate_dql_search_entity_command(entity_name),
        budget_tracker=budget_tracker
    )

    if not response or not response.records:
        return 'No monitored entity found with the specified name.'

    lines = ['The following monitored entities were found:']
    for entity in response.records:
        if entity:
            lines.append(
                f"- Entity '{entity.get('entity.name')}' of type '{entity.get('entity.type')}' "
                f"has entity id '{entity.get('id')}'"
            )
    return "\n".join(lines) + "\n"


async def get_monitored_entity_details(client: DynatraceHttpClient, entity_id: str) -> Dict[str, Any]:
    """Entity details (displayName, type, properties, ...) from /api/v2/entities."""
    logger.debug(f"fetching entity | id:{entity_id}")
    return await client.request(method="GET", path=f"/api/v2/entities/{entity_id}")


def entity_details_link(environment_url: str, entity_type: str, entity_id: str) -> Optional[str]:
    """Deep link into the Dynatrace app that fits the entity type, if there is one."""
    if entity_type == 'SERVICE':
        return f"{environment_url}/ui/apps/dynatrace.services/explorer?detailsId={entity_id}&sidebarOpen=false"
    if entity_type == 'HOST':
        return f"{environment_url}/ui/apps/dynatrace.infraops/hosts/{entity_id}"
    if entity_type == 'KUBERNETES_CLUSTER':
        return f"{environment_url}/ui/apps/dynatrace.infraops/kubernetes/{entity_id}"
    if entity_type == 'CLOUD_APPLICATION':
        return f"{environment_url}/ui/apps/dynatrace.kubernetes/explorer/workload?detailsId={entity_id}"
    return None
