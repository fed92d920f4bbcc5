"""
Security vulnerabilities

Fetches the latest open vulnerability snapshot per affected entity from
Grail security events.
"""

from typing import Any, Dict, List, Optional

from .budget import GrailBudgetTracker
from .client import DynatraceHttpClient
from .dql import DqlRequest, execute_dql

DEFAULT_MIN_RISK_SCORE = 8.0


def build_vulnerabilities_query(additional_filter: Optional[str] = None, risk_score: Optional[float] = None) -> str:
    extra = f"    | filter {additional_filter}\n" if additional_filter else ""
    return (
        "fetch security.events\n"
        '    | filter dt.system.bucket=="default_securityevents_builtin"\n'
        '        AND event.provider=="Dynatrace"\n'
        '        AND event.type=="VULNERABILITY_STATE_REPORT_EVENT"\n'
        '        AND event.level=="ENTITY"\n'
        "    // filter for the latest snapshot per entity\n"
        "    | dedup {vulnerability.display_id, affected_entity.id}, sort:{timestamp desc}\n"
        "    // filter for open non-muted vulnerabilities with a minimum risk score\n"
        '    | filter vulnerability.resolution.status=="OPEN"\n'
        f"        AND vulnerability.risk.score >= {risk_score or DEFAULT_MIN_RISK_SCORE}\n"
        f"{extra}"
        "    | sort vulnerability.risk.score desc\n"
        "    | limit 100"
    )


def format_vulnerability(record: Dict[str, Any]) -> str:
    """One line summary of a vulnerability record; missing fields render as N/A."""
    def value(key: str, default: str = 'N/A') -> Any:
        return record.get(key) or default

    return (
        f"{value('vulnerability.title', 'Unknown')} "
        f"(Vulnerability ID: {value('vulnerability.id')}, "
        f"Vulnerability Display ID: {value('vulnerability.display_id')}, "
        f"Risk Score: {value('vulnerability.risk.score')}, "
        f"Risk Level: {value('vulnerability.risk.level')}, "
        f"Affected Entity: {value('affected_entity.name')}, "
        f"External Vulnerability ID: {value('vulnerability.external_id')}, "
        f"CVE: {value('vulnerability.references.cve')}, "
        f"Mute Status: {value('vulnerability.mute.status')}, "
        f"Parent Mute Status: {value('vulnerability.parent.mute.status')}, "
        f"Full Details: {value('vulnerability.url')})"
    )


async def list_vulnerabilities(
    client: DynatraceHttpClient,
    additional_filter: Optional[str] = None,
    risk_score: Optional[float] = None,
    budget_tracker: Optional[GrailBudgetTracker] = None
) -> List[str]:
    """
    List open vulnerabilities with at least the given risk score (default 8.0).

    Returns:
        One formatted line per vulnerability, empty if none were found
    """
    request = DqlRequest(
        query=build_vulnerabilities_query(additional_filter, risk_score),
        max_result_records=5000,
        max_result_bytes=5_000_000,
    )
    response = await execute_dql(client, request, budget_tracker=budget_tracker)

    if not response or not response.records:
        return []
    return [format_vulnerability(record) for record in response.records]


SECURITY_PROBLEM_FIELDS = (
    "+riskAssessment,+managementZones,+codeLevelVulnerabilityDetails,+globalCounts,"
    "+description,+remediationDescription,+affectedEntities,+exposedEntities,+entryPoints"
)


async def get_vulnerability_details(client: DynatraceHttpClient, security_problem_id: str) -> Dict[str, Any]:
    """Security problem details from /api/v2/securityProblems, including entities and entry points."""
    return await client.request(
        method="GET",
        path=f"/api/v2/securityProblems/{security_problem_id}",
        params={"fields": SECURITY_PROBLEM_FIELDS}
    )
