"""
Logs and events

DQL shortcuts for the logs of one entity and the events of one
Kubernetes cluster.
"""

from typing import Any, Dict, List, Optional

from .budget import GrailBudgetTracker
from .client import DynatraceHttpClient
from .dql import escape_dql_string, execute_dql


async def get_logs_for_entity(
    client: DynatraceHttpClient,
    entity_name: str,
    budget_tracker: Optional[GrailBudgetTracker] = None
) -> Optional[List[Dict[str, Any]]]:
    dql = f'fetch logs | filter dt.source_entity == "{escape_dql_string(entity_name)}"'
    response = await execute_dql(client, dql, budget_tracker=budget_tracker)
    return response.records if response else None


async def get_events_for_cluster(
    client: DynatraceHttpClient,
    cluster_id: str,
    budget_tracker: Optional[GrailBudgetTracker] = None
) -> Optional[List[Dict[str, Any]]]:
    dql = f'fetch events | filter k8s.cluster.id == "{escape_dql_string(cluster_id)}"'
    response = await execute_dql(client, dql, budget_tracker=budget_tracker)
    return response.records if response else None
