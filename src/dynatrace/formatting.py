"""
Text rendering of tool results
"""

import json
from typing import Any, Dict, List, Optional

from .budget import format_bytes_as_gb
from .dql import DqlExecutionResult, DqlVerification


def _to_json(value: Any) -> str:
    return json.dumps(value, default=str)


def format_dql_result(result: Optional[DqlExecutionResult]) -> str:
    """
    Render an execute_dql outcome.

    Scan values Grail did not report are shown as unknown, which keeps them
    apart from a real 0.
    """
    if result is None:
        return "The DQL query did not return a result. It may have failed or been cancelled in Grail."

    metadata = result.metadata
    lines = ["📊 **DQL Query Results**", ""]

    if metadata.scanned_bytes is None:
        lines.append("- **Scanned Bytes:** unknown")
    else:
        lines.append(
            f"- **Scanned Bytes:** {format_bytes_as_gb(metadata.scanned_bytes)} GB ({metadata.scanned_bytes} bytes)"
        )
    if result.budget_state is not None and not result.budget_state.is_unlimited:
        state = result.budget_state
        lines.append(
            f"    - **Session Total:** {format_bytes_as_gb(state.total_bytes_scanned)} GB "
            f"(remaining: {format_bytes_as_gb(state.remaining_budget_bytes)} GB)"
        )
    lines.append(
        f"- **Scanned Records:** {'unknown' if metadata.scanned_records is None else metadata.scanned_records}"
    )
    if metadata.execution_time_ms is not None:
        lines.append(f"- **Execution Time:** {metadata.execution_time_ms} ms")
    if metadata.query_id:
        lines.append(f"- **Query ID:** {metadata.query_id}")
    if metadata.sampled:
        lines.append("- **⚠️ Sampling Used:** Yes (results may be approximate)")

    if result.budget_warning:
        lines.extend(["", result.budget_warning])

    lines.extend(["", f"📋 **Query Results ({len(result.records)} records):**", "```json"])
    lines.append(json.dumps(result.records, indent=2, default=str))
    lines.append("```")
    return "\n".join(lines)


def format_dql_verification(verification: DqlVerification) -> str:
    resp = 'DQL Statement Verification:\n'

    if verification.notifications:
        resp += 'Please consider the following notifications for adapting your DQL statement:\n'
        for notification in verification.notifications:
            resp += f"* {notification.severity}: {notification.message}\n"

    if verification.valid:
        resp += 'The DQL statement is valid - you can use the "execute_dql" tool.\n'
    else:
        resp += 'The DQL statement is invalid. Please adapt your statement.\n'
    return resp


def format_problems(records: List[Dict[str, Any]]) -> str:
    if not records:
        return 'No problems found'
    return f"Found {len(records)} problems:\n" + "\n".join(
        f"* {record.get('display_id')} {record.get('event.name')} "
        f"(status: {record.get('event.status')}, category: {record.get('event.category')}, "
        f"problemId: {record.get('problem_id')})"
        for record in records
    )


def _notifications(response: Dict[str, Any]) -> str:
    notifications = ((response.get('metadata') or {}).get('notifications')) or []
    if not notifications:
        return ''
    text = '\n**Notifications:**\n'
    for notification in notifications:
        text += f"- {notification.get('severity')}: {notification.get('message')}\n"
    return text


def format_nl2dql(text: str, response: Dict[str, Any]) -> str:
    resp = '🔤 Natural Language to DQL:\n\n'
    resp += f'**Query:** "{text}"\n\n'
    resp += f"**Generated DQL:**\n```\n{response.get('dql')}\n```\n\n"
    resp += f"**Status:** {response.get('status')}\n"
    resp += f"**Message Token:** {response.get('messageToken')}\n"
    resp += _notifications(response)
    resp += '\n💡 **Next Steps:**\n'
    resp += '1. Use "verify_dql" tool to validate this query\n'
    resp += '2. Use "execute_dql" tool to run the query\n'
    resp += "3. If results don't match expectations, refine your natural language description and try again\n"
    return resp


def format_dql2nl(dql: str, response: Dict[str, Any]) -> str:
    resp = '📝 DQL to Natural Language:\n\n'
    resp += f"**DQL Query:**\n```\n{dql}\n```\n\n"
    resp += f"**Summary:** {response.get('summary')}\n\n"
    resp += f"**Detailed Explanation:**\n{response.get('explanation')}\n\n"
    resp += f"**Status:** {response.get('status')}\n"
    resp += f"**Message Token:** {response.get('messageToken')}\n"
    resp += _notifications(response)
    return resp


def format_copilot_answer(text: str, response: Dict[str, Any]) -> str:
    resp = '🤖 Davis CoPilot Response:\n\n'
    resp += f'**Your Question:** "{text}"\n\n'
    resp += f"**Answer:**\n{response.get('text')}\n\n"
    resp += f"**Status:** {response.get('status')}\n"
    resp += f"**Message Token:** {response.get('messageToken')}\n"

    sources = ((response.get('metadata') or {}).get('sources')) or []
    if sources:
        resp += '\n**Sources:**\n'
        for source in sources:
            resp += f"- {source.get('title') or 'Untitled'}: {source.get('url') or 'No URL'}\n"

    resp += _notifications(response)

    conversation_id = (response.get('state') or {}).get('conversationId')
    if conversation_id:
        resp += f"\n**Conversation ID:** {conversation_id}"
    return resp


def format_records(title: str, records: Optional[List[Any]]) -> str:
    return f"{title}:\n{_to_json(records)}"


def format_problem_details(problem: Dict[str, Any], environment_url: str) -> str:
    affected_entities = problem.get('affectedEntities') or []
    resp = (
        f"The problem {problem.get('displayId')} with the title {problem.get('title')} "
        f"(ID: {problem.get('problemId')}). "
        f"The severity is {problem.get('severityLevel')}, and it affects {len(affected_entities)} entities:"
    )
    for entity in affected_entities:
        entity_id = (entity.get('entityId') or {}).get('id')
        resp += f"\n- {entity.get('name')} (please refer to this entity with `entityId` {entity_id})"

    resp += f"\nThe problem first appeared at {problem.get('startTime')}\n"

    root_cause = problem.get('rootCauseEntity')
    if root_cause:
        resp += (
            f"The possible root-cause could be in entity {root_cause.get('name')} "
            f"with `entityId` {(root_cause.get('entityId') or {}).get('id')}.\n"
        )

    impact_analysis = problem.get('impactAnalysis')
    if impact_analysis:
        affected_users = sum(
            impact.get('estimatedAffectedUsers') or 0 for impact in impact_analysis.get('impacts') or []
        )
        resp += f"The problem is estimated to affect {affected_users} users.\n"

    resp += (
        f"Tell the user to access the link {environment_url}/ui/apps/dynatrace.davis.problems/problem/"
        f"{problem.get('problemId')} to get more insights into the problem.\n"
    )
    return resp


def format_vulnerability_details(security_problem: Dict[str, Any], environment_url: str) -> str:
    problem_id = security_problem.get('securityProblemId')
    resp = (
        f"The Security Problem (Vulnerability) {security_problem.get('displayId')} with securityProblemId "
        f"{problem_id} has the title {security_problem.get('title')}.\n"
    )
    resp += f"The related CVEs are {','.join(security_problem.get('cveIds') or []) or 'unknown'}.\n"
    resp += f"The description is: {security_problem.get('description')}.\n"
    resp += f"The remediation description is: {security_problem.get('remediationDescription')}.\n"

    affected = security_problem.get('affectedEntities') or []
    if affected:
        resp += 'The vulnerability affects the following entities:\n'
        resp += ''.join(f"* {entity}\n" for entity in affected)
    else:
        resp += 'This vulnerability does not seem to affect any entities.\n'

    code_level = security_problem.get('codeLevelVulnerabilityDetails')
    if code_level:
        resp += f"Please investigate this on code-level: {_to_json(code_level)}\n"

    exposed = security_problem.get('exposedEntities') or []
    if exposed:
        resp += 'The vulnerability exposes the following entities:\n'
        resp += ''.join(f"* {entity}\n" for entity in exposed)
    else:
        resp += 'This vulnerability does not seem to expose any entities.\n'

    entry_points = security_problem.get('entryPoints') or {}
    if entry_points.get('items'):
        resp += 'The following entrypoints are affected:\n'
        resp += ''.join(f"* {entry.get('sourceHttpPath')}\n" for entry in entry_points['items'])
        if entry_points.get('truncated'):
            resp += 'The list of entry points was truncated.\n'
    else:
        resp += 'This vulnerability does not seem to affect any entrypoints.\n'

    risk_score = (security_problem.get('riskAssessment') or {}).get('riskScore')
    if risk_score and risk_score > 8:
        resp += (
            'The vulnerability has a high-risk score. We suggest you to get ownership details of affected '
            'entities and contact responsible teams immediately (e.g, via send-slack-message)\n'
        )

    resp += (
        f"Tell the user to access the link {environment_url}/ui/apps/dynatrace.security.vulnerabilities/"
        f"vulnerabilities/{problem_id} to get more insights into the vulnerability / security problem.\n"
    )
    return resp
