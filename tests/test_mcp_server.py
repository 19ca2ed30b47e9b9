"""
Tests for the MCP tool server.

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-MCP-N-01 | Tool list | Equivalence – schema | One tool, query required | - |
| TC-MCP-N-02 | State file exists | Equivalence – normal | Plain JSON text | - |
| TC-MCP-N-03 | State file missing | Equivalence – first run | Notice prefixed | - |
| TC-MCP-N-04 | limit/timeout given | Equivalence – options | Passed to orchestrator | borrowed browser |
| TC-MCP-A-01 | Missing / blank query | Abnormal – args | ToolError | - |
| TC-MCP-A-02 | Search raises | Abnormal – failure | ToolError "Search failed: ..." | - |
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from google_search.mcp.server import (
    FIRST_RUN_NOTICE,
    TOOL_NAME,
    TOOLS,
    ToolError,
    create_app,
    get_tool_state_file,
    run_search_tool,
)
from google_search.search.errors import ChallengeUnresolved
from google_search.search.schemas import SearchResponse, SearchResult

pytestmark = pytest.mark.unit

RESPONSE = SearchResponse(
    query="q",
    results=[SearchResult(title="T", link="https://example.com/", snippet="S")],
)


@pytest.fixture
def orchestrator_cls():
    """Patched SearchOrchestrator class."""
    instance = MagicMock()
    instance.execute_search = AsyncMock(return_value=RESPONSE)
    with patch("google_search.mcp.server.SearchOrchestrator", return_value=instance) as cls:
        yield cls


class TestToolDefinition:
    """Tests for the advertised tool."""

    def test_single_tool(self) -> None:
        """TC-MCP-N-01: one tool with a required query."""
        assert [tool.name for tool in TOOLS] == [TOOL_NAME]
        schema = TOOLS[0].inputSchema
        assert schema["required"] == ["query"]
        assert schema["properties"]["limit"]["type"] == "integer"
        assert schema["properties"]["timeout"]["type"] == "integer"

    def test_tool_state_file_in_home(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """The tool server keeps its state in the home directory."""
        monkeypatch.setattr(Path, "home", lambda: tmp_path)

        assert get_tool_state_file() == tmp_path / ".google-search-browser-state.json"

    def test_create_app(self) -> None:
        """The server is named and built without a browser."""
        app = create_app(None)

        assert app.name == "google-search-server"


class TestRunSearchTool:
    """Tests for run_search_tool()."""

    @pytest.mark.asyncio
    async def test_existing_state(self, orchestrator_cls, tmp_path: Path) -> None:
        """TC-MCP-N-02: no notice when state exists."""
        # Given
        state_file = tmp_path / "state.json"
        state_file.write_text("{}", encoding="utf-8")

        # When
        text = await run_search_tool({"query": "q"}, None, state_file=state_file)

        # Then
        assert json.loads(text) == RESPONSE.model_dump()

    @pytest.mark.asyncio
    async def test_first_run_notice(self, orchestrator_cls, tmp_path: Path) -> None:
        """TC-MCP-N-03: the notice precedes the JSON on first use."""
        text = await run_search_tool({"query": "q"}, None, state_file=tmp_path / "missing.json")

        notice, _, body = text.partition("\n\n")
        assert notice == FIRST_RUN_NOTICE
        assert json.loads(body)["query"] == "q"

    @pytest.mark.asyncio
    async def test_options_and_browser(self, orchestrator_cls, tmp_path: Path) -> None:
        """TC-MCP-N-04: arguments become options; the shared browser is lent."""
        browser = MagicMock()
        state_file = tmp_path / "state.json"

        await run_search_tool(
            {"query": "q", "limit": 3, "timeout": 5000}, browser, state_file=state_file
        )

        orchestrator_cls.assert_called_once_with(browser)
        query, options = orchestrator_cls.return_value.execute_search.await_args.args
        assert query == "q"
        assert options.limit == 3
        assert options.timeout == 5000
        assert options.state_file == str(state_file)
        assert options.no_save_state is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("arguments", [{}, {"query": ""}, {"query": "   "}, {"query": 5}])
    async def test_query_required(self, orchestrator_cls, arguments: dict) -> None:
        """TC-MCP-A-01: a missing query is a tool error."""
        with pytest.raises(ToolError):
            await run_search_tool(arguments, None)

        orchestrator_cls.return_value.execute_search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_tool_error(self, orchestrator_cls, tmp_path: Path) -> None:
        """TC-MCP-A-02: search failures are reported as tool errors."""
        orchestrator_cls.return_value.execute_search.side_effect = ChallengeUnresolved(
            "https://www.google.com/sorry/index", 120000
        )

        with pytest.raises(ToolError) as exc_info:
            await run_search_tool({"query": "q"}, None, state_file=tmp_path / "s.json")

        assert str(exc_info.value).startswith("Search failed: Human verification")
