"""
Davis problems

Lists problems through the same DQL statement the Problems app uses.
"""

from typing import Any, Dict, Optional

from .budget import GrailBudgetTracker
from .client import DynatraceHttpClient
from .dql import DqlExecutionResult, DqlRequest, execute_dql

PROBLEMS_MAX_RECORDS = 5000
PROBLEMS_MAX_BYTES = 5_000_000  # 5 MB


def build_problems_query(additional_filter: Optional[str] = None) -> str:
    """DQL for all Davis problems of the last 12 hours, optionally narrowed by a filter."""
    extra = f"| filter {additional_filter}\n" if additional_filter else ""
    return (
        "fetch dt.davis.problems, from: now()-12h, to: now()\n"
        "| filter isNull(dt.davis.is_duplicate) OR not(dt.davis.is_duplicate)\n"
        f"{extra}"
        "| fieldsAdd\n"
        "   duration = coalesce(event.end, now()) - event.start,\n"
        "   affected_entities_count = arraySize(affected_entity_ids),\n"
        "   event_count = arraySize(dt.davis.event_ids),\n"
        "   affected_users_count = dt.davis.affected_users_count,\n"
        "   problem_id = event.id\n"
        "| fields display_id, event.name, event.description, event.status, event.category, event.start, event.end,\n"
        "         root_cause_entity_id, root_cause_entity_name, duration, affected_entities_count,\n"
        "         event_count, affected_users_count, problem_id, dt.davis.mute.status, dt.davis.mute.user,\n"
        "         entity_tags, labels.alerting_profile, maintenance.is_under_maintenance,\n"
        "         aws.account.id, azure.resource.group, azure.subscription, cloud.provider, cloud.region,\n"
        "         dt.cost.costcenter, dt.cost.product, dt.host_group.id, dt.security_context, gcp.project.id,\n"
        "         host.name,\n"
        "         k8s.cluster.name, k8s.cluster.uid, k8s.container.name, k8s.namespace.name, k8s.node.name,\n"
        "         k8s.pod.name, k8s.service.name, k8s.workload.kind, k8s.workload.name\n"
        "| sort event.status asc, event.start desc\n"
    )


async def list_problems(
    client: DynatraceHttpClient,
    additional_filter: Optional[str] = None,
    budget_tracker: Optional[GrailBudgetTracker] = None
) -> Optional[DqlExecutionResult]:
    request = DqlRequest(
        query=build_problems_query(additional_filter),
        max_result_records=PROBLEMS_MAX_RECORDS,
        max_result_bytes=PROBLEMS_MAX_BYTES,
    )
    return await execute_dql(client, request, budget_tracker=budget_tracker)


async def get_problem_details(client: DynatraceHttpClient, problem_id: str) -> Dict[str, Any]:
    """Problem details (affected entities, root cause, impact analysis) from /api/v2/problems."""
    return await client.request(method="GET", path=f"/api/v2/problems/{problem_id}")
