"""Tests for tool error reporting."""

import inspect

import pytest
from fastmcp.exceptions import ToolError

from src.dynatrace.budget import BudgetExceededError, GrailBudgetTracker
from src.dynatrace.client import DynatraceAPIError
from src.dynatrace.errors import PERMISSION_HINT, format_tool_error, report_tool_errors


class TestFormatToolError:
    def test_forbidden_gets_permission_hint(self):
        error = DynatraceAPIError("Dynatrace API error 403: Forbidden", status_code=403, body={"error": "x"})

        text = format_tool_error(error)

        assert text.startswith("Client Request Error: Dynatrace API error 403: Forbidden with HTTP status: 403.")
        assert PERMISSION_HINT in text
        assert text.endswith('(body: {"error": "x"})')

    def test_other_status_has_no_hint(self):
        text = format_tool_error(DynatraceAPIError("boom", status_code=500, body="oops"))

        assert PERMISSION_HINT not in text
        assert "with HTTP status: 500" in text

    def test_generic_error(self):
        state = GrailBudgetTracker(1).get_state()

        assert format_tool_error(BudgetExceededError("over budget", state)) == "Error: over budget"


class TestReportToolErrors:
    @pytest.mark.asyncio
    async def test_passes_results_through(self):
        @report_tool_errors
        async def tool(value):
            return value * 2

        assert await tool(21) == 42

    @pytest.mark.asyncio
    async def test_converts_exceptions(self):
        @report_tool_errors
        async def tool():
            raise ValueError("bad input")

        with pytest.raises(ToolError, match="Error: bad input"):
            await tool()

    def test_keeps_signature(self):
        @report_tool_errors
        async def tool(entity_id: str, limit: int = 5):
            """Doc"""

        assert tool.__name__ == "tool"
        assert tool.__doc__ == "Doc"
        assert list(inspect.signature(tool).parameters) == ["entity_id", "limit"]
