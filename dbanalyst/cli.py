"""
dbanalyst CLI

Run the analytics tools against the configured database from a shell.

Usage:
    dbanalyst tools list                                   # List registered tools
    dbanalyst tools run calculate_metrics \\
        --args '{"table": "projects", "metric": "count"}'  # Run one tool
    dbanalyst query "SELECT * FROM projects" --limit 20    # Read-only SQL
"""

import asyncio
import json
import logging
import sys
import uuid
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from dbanalyst import __version__
from dbanalyst.config import get_settings
from dbanalyst.runtime import AnalyticsRuntime
from dbanalyst.tools import ToolExecutor, ToolRegistry, initialize_tools
from dbanalyst.tools.base import ToolContext

console = Console()


def configure_cli_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("dbanalyst").setLevel(level)
    logging.getLogger("asyncpg").setLevel(level)


async def execute_tool(name: str, arguments: dict[str, Any], approve: bool = False) -> dict[str, Any]:
    """Start a runtime from settings, run one tool, and close the runtime."""
    settings = get_settings()
    initialize_tools(settings.tools.policy_path)
    async with AnalyticsRuntime.from_settings(settings) as runtime:
        ctx = ToolContext(
            user_id="cli",
            correlation_id=f"cli-{uuid.uuid4().hex[:12]}",
            approved=approve,
            metadata={"runtime": runtime},
        )
        return await ToolExecutor().execute(name, arguments, ctx)


def _print_outcome(outcome: dict[str, Any]) -> None:
    console.print_json(json.dumps(outcome, default=str))
    if not outcome.get("success", False):
        sys.exit(1)


def _run(name: str, arguments: dict[str, Any], approve: bool) -> None:
    try:
        outcome = asyncio.run(execute_tool(name, arguments, approve))
    except Exception as exc:
        console.print(f"[red]Tool execution failed: {exc}[/red]")
        sys.exit(1)
    _print_outcome(outcome)


# ============================================================================
# CLI Commands
# ============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="dbanalyst")
@click.option("--verbose", "-v", is_flag=True, help="Show application logs.")
def cli(verbose: bool):
    """dbanalyst - Analytics tools over a PostgreSQL database."""
    configure_cli_logging(verbose)


@cli.group(name="tools")
def tools():
    """Inspect and run analytics tools."""
    pass


@tools.command(name="list")
def list_tools():
    """List available tools."""
    initialize_tools(get_settings().tools.policy_path)
    table = Table(title="Tools", show_header=True, header_style="bold cyan")
    table.add_column("Name", no_wrap=True)
    table.add_column("Category")
    table.add_column("Approval")
    table.add_column("Enabled")
    table.add_column("Description")
    for definition in sorted(ToolRegistry.list_definitions(), key=lambda d: d.name):
        table.add_row(
            definition.name,
            definition.category.value,
            "yes" if definition.policy.requires_approval else "no",
            "yes" if definition.policy.enabled else "no",
            definition.description,
        )
    console.print(table)


@tools.command(name="run")
@click.argument("name")
@click.option("--args", "raw_args", default="{}", help="Tool arguments as a JSON object.")
@click.option("--approve", is_flag=True, help="Approve tools that require it.")
def run_tool(name: str, raw_args: str, approve: bool):
    """Run a tool and print its JSON result."""
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--args") from exc
    if not isinstance(arguments, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--args")
    _run(name, arguments, approve)


@cli.command()
@click.argument("sql")
@click.option("--limit", type=int, default=None, help="Row cap appended when SQL has no LIMIT.")
def query(sql: str, limit: int | None):
    """Run a read-only SELECT query."""
    arguments: dict[str, Any] = {"query": sql}
    if limit is not None:
        arguments["limit"] = limit
    _run("run_query", arguments, approve=False)


# ============================================================================
# Entry Point
# ============================================================================


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
