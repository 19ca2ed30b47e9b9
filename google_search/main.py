"""
Command line entry point for google-search.

    google-search search "playwright python" --limit 5
    google-search search "playwright python" --get-html --save-html
    google-search mcp
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from google_search.search.orchestrator import SearchOrchestrator
from google_search.search.schemas import HtmlResponse, SearchOptions
from google_search.utils.config import get_default_state_file, get_settings
from google_search.utils.logging import ensure_logging_configured, get_logger

HTML_PREVIEW_LENGTH = 500


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="google-search",
        description="Google search through a Playwright-driven browser",
    )
    parser.add_argument("--version", action="version", version=settings.general.version)
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="Run a search and print JSON")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "-l", "--limit",
        type=int,
        default=settings.search.default_limit,
        help="Maximum number of results",
    )
    search_parser.add_argument(
        "-t", "--timeout",
        type=int,
        default=settings.search.cli_default_timeout_ms,
        help="Timeout in milliseconds",
    )
    search_parser.add_argument(
        "--state-file",
        default=str(get_default_state_file(settings)),
        help="Browser state file path",
    )
    search_parser.add_argument(
        "--no-save-state",
        action="store_true",
        help="Do not save browser state or fingerprint",
    )
    search_parser.add_argument(
        "--get-html",
        action="store_true",
        help="Fetch the result page markup instead of parsed results",
    )
    search_parser.add_argument(
        "--save-html",
        action="store_true",
        help="Save the markup (and a screenshot) to disk",
    )
    search_parser.add_argument("--html-output", help="Markup output file path")

    subparsers.add_parser("mcp", help="Run the MCP tool server on stdio")
    return parser


def summarize_markup(response: HtmlResponse) -> dict[str, Any]:
    """Summary printed for --get-html instead of the full markup."""
    html = response.html
    preview = html[:HTML_PREVIEW_LENGTH] + ("..." if len(html) > HTML_PREVIEW_LENGTH else "")
    return {
        "query": response.query,
        "url": response.url,
        "originalHtmlLength": response.original_html_length,
        "cleanedHtmlLength": len(html),
        "savedPath": response.saved_path,
        "screenshotPath": response.screenshot_path,
        "htmlPreview": preview,
    }


async def run_search_command(args: argparse.Namespace) -> None:
    """Run the search subcommand, printing JSON to stdout."""
    options = SearchOptions(
        limit=args.limit,
        timeout=args.timeout,
        state_file=args.state_file,
        no_save_state=args.no_save_state,
    )
    orchestrator = SearchOrchestrator()

    if args.get_html:
        response = await orchestrator.fetch_result_page_markup(
            args.query,
            options,
            save_to_file=args.save_html,
            output_path=args.html_output,
        )
        if args.save_html and response.saved_path:
            print(f"HTML saved to: {response.saved_path}")
        print(json.dumps(summarize_markup(response), ensure_ascii=False, indent=2))
    else:
        response = await orchestrator.execute_search(args.query, options)
        print(json.dumps(response.model_dump(), ensure_ascii=False, indent=2))


def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    ensure_logging_configured()
    logger = get_logger(__name__)

    if args.command == "mcp":
        from google_search.mcp.server import run_server

        asyncio.run(run_server())
        return 0

    try:
        asyncio.run(run_search_command(args))
    except Exception as e:
        logger.error("Search command failed", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
