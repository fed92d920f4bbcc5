"""Tests for tool result rendering."""

from src.dynatrace.budget import GrailBudgetTracker
from src.dynatrace.dql import DqlExecutionResult, DqlNotification, DqlVerification, ScanMetadata
from src.dynatrace.formatting import (
    format_copilot_answer,
    format_dql_result,
    format_dql_verification,
    format_problem_details,
    format_problems,
    format_vulnerability_details,
)

from tests.conftest import ENVIRONMENT_URL


class TestFormatDqlResult:
    def test_no_result(self):
        assert "did not return a result" in format_dql_result(None)

    def test_unknown_scan_values(self):
        text = format_dql_result(DqlExecutionResult(records=[], metadata=ScanMetadata()))

        assert "- **Scanned Bytes:** unknown" in text
        assert "- **Scanned Records:** unknown" in text

    def test_zero_bytes_is_not_unknown(self):
        text = format_dql_result(DqlExecutionResult(
            records=[{"a": 1}],
            metadata=ScanMetadata(scanned_bytes=0, scanned_records=0, query_id="q-1", sampled=True),
        ))

        assert "- **Scanned Bytes:** 0.0000 GB (0 bytes)" in text
        assert "- **Scanned Records:** 0" in text
        assert "- **Query ID:** q-1" in text
        assert "Sampling Used" in text
        assert "(1 records)" in text

    def test_budget_warning_and_session_total(self):
        tracker = GrailBudgetTracker(1)
        state = tracker.add_bytes_scanned(900_000_000)

        text = format_dql_result(DqlExecutionResult(
            records=[],
            metadata=ScanMetadata(scanned_bytes=900_000_000),
            budget_state=state,
            budget_warning="⚠️ **Grail Budget Warning:** test",
        ))

        assert "**Session Total:** 0.900 GB (remaining: 0.100 GB)" in text
        assert "⚠️ **Grail Budget Warning:** test" in text


def test_format_verification():
    text = format_dql_verification(DqlVerification(
        valid=False, notifications=[DqlNotification("ERROR", "unknown command")]
    ))

    assert "* ERROR: unknown command" in text
    assert text.endswith("The DQL statement is invalid. Please adapt your statement.\n")


def test_format_problems():
    assert format_problems([]) == 'No problems found'
    assert format_problems([{"display_id": "P-1", "event.name": "CPU"}]).startswith("Found 1 problems:\n* P-1 CPU")


def test_format_copilot_answer():
    text = format_copilot_answer("why?", {
        "text": "because",
        "status": "SUCCESSFUL",
        "metadata": {"sources": [{"url": "https://docs"}]},
        "state": {"conversationId": "c-1"},
    })

    assert "- Untitled: https://docs" in text
    assert text.endswith("**Conversation ID:** c-1")


class TestFormatProblemDetails:
    def test_entities_root_cause_and_affected_users(self):
        text = format_problem_details({
            "problemId": "-123_456V2",
            "displayId": "P-240101",
            "title": "Failure rate increase",
            "severityLevel": "ERROR",
            "startTime": 1700000000000,
            "affectedEntities": [{"name": "checkout", "entityId": {"id": "SERVICE-1", "type": "SERVICE"}}],
            "rootCauseEntity": {"name": "db", "entityId": {"id": "SERVICE-2"}},
            "impactAnalysis": {"impacts": [
                {"estimatedAffectedUsers": 10},
                {"estimatedAffectedUsers": 5},
                {"impactType": "SERVICE"},
            ]},
        }, ENVIRONMENT_URL)

        assert "The severity is ERROR, and it affects 1 entities:" in text
        assert "- checkout (please refer to this entity with `entityId` SERVICE-1)" in text
        assert "root-cause could be in entity db with `entityId` SERVICE-2" in text
        assert "estimated to affect 15 users" in text
        assert f"{ENVIRONMENT_URL}/ui/apps/dynatrace.davis.problems/problem/-123_456V2" in text

    def test_without_root_cause_or_impact(self):
        text = format_problem_details({"problemId": "p", "displayId": "P-1"}, ENVIRONMENT_URL)

        assert "affects 0 entities:" in text
        assert "root-cause" not in text
        assert "estimated to affect" not in text


class TestFormatVulnerabilityDetails:
    def test_high_risk_with_truncated_entry_points(self):
        text = format_vulnerability_details({
            "securityProblemId": "SP-1",
            "displayId": "S-1",
            "title": "Log4Shell",
            "cveIds": ["CVE-2021-44228", "CVE-2021-45046"],
            "riskAssessment": {"riskScore": 10.0},
            "affectedEntities": ["PROCESS_GROUP-1"],
            "exposedEntities": ["SERVICE-1"],
            "entryPoints": {"items": [{"sourceHttpPath": "/api/login"}], "truncated": True},
        }, ENVIRONMENT_URL)

        assert "The related CVEs are CVE-2021-44228,CVE-2021-45046.\n" in text
        assert "* PROCESS_GROUP-1\n" in text
        assert "* /api/login\nThe list of entry points was truncated.\n" in text
        assert "high-risk score" in text
        assert f"{ENVIRONMENT_URL}/ui/apps/dynatrace.security.vulnerabilities/vulnerabilities/SP-1" in text

    def test_low_risk_without_entities(self):
        text = format_vulnerability_details({
            "securityProblemId": "SP-2",
            "riskAssessment": {"riskScore": 5.3},
        }, ENVIRONMENT_URL)

        assert "The related CVEs are unknown.\n" in text
        assert "This vulnerability does not seem to affect any entities.\n" in text
        assert "This vulnerability does not seem to expose any entities.\n" in text
        assert "This vulnerability does not seem to affect any entrypoints.\n" in text
        assert "high-risk score" not in text
