"""
MCP server for google-search.

Exposes one tool, "google-search", over stdio. The server process owns a
single headless BrowserHandle for its whole lifetime and lends it to every
search; the handle is closed when the server shuts down.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from google_search.crawler.browser import BrowserHandle, launch_browser
from google_search.search.orchestrator import SearchOrchestrator
from google_search.search.schemas import SearchOptions
from google_search.utils.config import get_settings
from google_search.utils.logging import LogContext, ensure_logging_configured, get_logger

logger = get_logger(__name__)

SERVER_NAME = "google-search-server"
TOOL_NAME = "google-search"

FIRST_RUN_NOTICE = (
    "Note: no browser state file exists yet. On first use, if a human-verification "
    "page appears, the browser switches to a visible window so the check can be "
    "completed. The state is saved afterwards, so later searches run more smoothly."
)

TOOLS = [
    Tool(
        name=TOOL_NAME,
        description=(
            "Search Google for up-to-date web information. Returns JSON with the "
            "query and a list of results, each with title, link and snippet. "
            "Use for current events, fact checking and finding sources on a topic."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": (
                        "Search query. Prefer specific English keywords; supports "
                        '"exact phrase", site:domain, -exclude and OR operators.'
                    ),
                },
                "limit": {
                    "type": "integer",
                    "description": "Number of results to return (default: 10, suggested 1-20)",
                    "minimum": 1,
                },
                "timeout": {
                    "type": "integer",
                    "description": "Timeout in milliseconds (default: 60000)",
                    "minimum": 1,
                },
            },
            "required": ["query"],
        },
    ),
]


class ToolError(Exception):
    """Tool failure reported to the client as an isError result."""


def get_tool_state_file() -> Path:
    """Session state file used by the tool server (in the home directory)."""
    return Path.home() / get_settings().storage.tool_state_file_name


async def run_search_tool(
    arguments: dict[str, Any],
    browser: BrowserHandle | None,
    state_file: Path | None = None,
) -> str:
    """Execute the google-search tool.

    Args:
        arguments: Tool arguments (query, optional limit and timeout).
        browser: Server-owned browser lent to the search.
        state_file: Session state path. Defaults to the tool state file.

    Returns:
        JSON response text, prefixed by a first-run notice when no state
        file exists yet.

    Raises:
        ToolError: If arguments are invalid or the search fails.
    """
    query = arguments.get("query")
    if not isinstance(query, str) or not query.strip():
        raise ToolError("Search failed: query is required")

    state_file = state_file or get_tool_state_file()
    notice = ""
    if not state_file.exists():
        notice = FIRST_RUN_NOTICE
        logger.warning("Browser state file not found", path=str(state_file))

    options = SearchOptions(
        limit=arguments.get("limit"),
        timeout=arguments.get("timeout"),
        state_file=str(state_file),
    )

    try:
        response = await SearchOrchestrator(browser).execute_search(query, options)
    except Exception as e:
        logger.error("Search tool failed", query=query, error=str(e))
        raise ToolError(f"Search failed: {e}") from e

    text = json.dumps(response.model_dump(), ensure_ascii=False, indent=2)
    if notice:
        text = f"{notice}\n\n{text}"
    return text


def create_app(browser: BrowserHandle | None) -> Server:
    """Build the MCP server bound to a browser handle."""
    app = Server(SERVER_NAME)

    @app.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return TOOLS

    @app.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls.

        Raised exceptions are turned into isError results by the MCP server.
        """
        if name != TOOL_NAME:
            raise ToolError(f"Unknown tool: {name}")

        with LogContext(tool=name):
            logger.info("Tool called", arguments=arguments)
            text = await run_search_tool(arguments, browser)
        return [TextContent(type="text", text=text)]

    return app


async def run_server() -> None:
    """Run the MCP server until stdin closes."""
    ensure_logging_configured()
    settings = get_settings()
    logger.info("Starting google-search MCP server")

    browser = await launch_browser(headless=True, timeout_ms=settings.search.default_timeout_ms)
    app = create_app(browser)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await browser.close()
        logger.info("google-search MCP server stopped")


def main() -> None:
    """Main entry point."""
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
