"""
CLI interface for Claw Diary.

Provides command-line access to summaries, analytics, search, exports,
the local viewer and the hook collector.
"""

import json
import logging
import sys
from datetime import date
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from claw_diary.core.analytics import DiaryAnalytics, generate_stats
from claw_diary.core.narrative import (
    confidence_marker,
    format_cost,
    format_duration,
    format_time,
    render_stats_markdown,
)
from claw_diary.core.summarizer import generate_daily_summary, generate_weekly_summary
from claw_diary.export.exporter import clear_data, export_data, write_timeline
from claw_diary.hooks import collector
from claw_diary.storage.paths import parse_log_date
from claw_diary.storage.repository import get_repository
from claw_diary.viewer.server import DEFAULT_PORT, serve as serve_viewer

app = typer.Typer()
console = Console()

# Exit codes
EXIT_CODE_OK = 0
EXIT_CODE_ERROR = 1

SEARCH_RESULT_LIMIT = 20
SEARCH_PREVIEW_LIMIT = 100
SUMMARIZE_MODES = ("today", "week", "json", "date")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Claw Diary: a personal diary of your AI agent's work."""
    _configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        console.print("Claw Diary - Use --help to see available commands")


@app.command()
def summarize(
    mode: str = typer.Argument("today", help="today, week, json or date"),
    day: Optional[str] = typer.Argument(None, help="YYYY-MM-DD (with the 'date' mode)"),
):
    """
    Print a diary summary.

    'today' prints today's narrative, 'week' the weekly report, 'json' today's
    summary as JSON, and 'date YYYY-MM-DD' the narrative for that day.
    """
    if mode not in SUMMARIZE_MODES:
        console.print(f"[red]Unknown mode:[/] {mode} (expected one of: {', '.join(SUMMARIZE_MODES)})")
        sys.exit(EXIT_CODE_ERROR)

    if mode == "week":
        typer.echo(generate_weekly_summary())
        sys.exit(EXIT_CODE_OK)

    target = date.today()
    if mode == "date":
        if not day:
            console.print("[red]Error:[/] 'date' needs a YYYY-MM-DD argument")
            sys.exit(EXIT_CODE_ERROR)
        try:
            target = parse_log_date(day)
        except ValueError:
            console.print(f"[red]Invalid date:[/] {day} (expected YYYY-MM-DD)")
            sys.exit(EXIT_CODE_ERROR)

    summary = generate_daily_summary(target)
    if mode == "json":
        typer.echo(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    else:
        typer.echo(summary.markdown)
    sys.exit(EXIT_CODE_OK)


@app.command()
def stats(
    as_json: bool = typer.Option(False, "--json", help="Print raw analytics as JSON"),
    as_markdown: bool = typer.Option(False, "--markdown", help="Print the dashboard as markdown"),
):
    """Show cost and activity analytics for the last 30 days."""
    analytics = generate_stats()
    if as_json:
        typer.echo(json.dumps(analytics.to_dict(), indent=2, ensure_ascii=False))
    elif as_markdown:
        typer.echo(render_stats_markdown(analytics))
    else:
        _display_stats(analytics)
    sys.exit(EXIT_CODE_OK)


@app.command()
def search(
    query: List[str] = typer.Argument(..., help="Text to look for in stored events"),
):
    """Search all stored events (case-insensitive)."""
    text = " ".join(query).strip()
    if not text:
        console.print("[red]Error:[/] search query is empty")
        sys.exit(EXIT_CODE_ERROR)

    results = get_repository().search(text)
    if not results:
        console.print(f'No events matching "{text}".')
        sys.exit(EXIT_CODE_OK)

    shown = results[-SEARCH_RESULT_LIMIT:]
    table = Table(title=f'Search Results: "{text}" ({len(results)} matches)')
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Tool")
    table.add_column("Type")
    table.add_column("Preview")
    for event in shown:
        preview = event.result.output_preview[:SEARCH_PREVIEW_LIMIT] if event.result else ""
        table.add_row(
            event.timestamp[:10],
            format_time(event.timestamp),
            event.tool_name or event.type.value,
            event.type.value,
            preview,
        )
    console.print(table)
    if len(results) > SEARCH_RESULT_LIMIT:
        console.print(f"[dim]Showing last {SEARCH_RESULT_LIMIT} of {len(results)} matches.[/]")
    sys.exit(EXIT_CODE_OK)


@app.command()
def export(
    export_format: str = typer.Argument("md", help="md, html or json"),
):
    """Export all diary data to a file under the data directory."""
    try:
        result = export_data(export_format)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    if result is None:
        console.print("No data to export.")
    else:
        console.print(f"[green]✓[/] Exported {result.entries} {_entries_label(result)} to {result.path}")
    sys.exit(EXIT_CODE_OK)


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", help="Confirm permanent deletion"),
):
    """Permanently delete all diary data."""
    repository = get_repository()
    if not yes:
        console.print(f"[yellow]This will permanently delete ALL claw-diary data in {repository.data_dir}[/]")
        console.print("Run with --yes to confirm: claw-diary clear --yes")
        sys.exit(EXIT_CODE_OK)

    if clear_data(True, repository):
        console.print("[green]✓[/] All claw-diary data has been deleted.")
    else:
        console.print("No data to clear.")
    sys.exit(EXIT_CODE_OK)


@app.command()
def serve(
    port: int = typer.Argument(DEFAULT_PORT, help="Port to listen on"),
):
    """Serve the timeline and reports on http://127.0.0.1:PORT."""
    url = f"http://127.0.0.1:{port}"
    console.print(f"Claw Diary viewer running at {url}")
    console.print(f"  Timeline: {url}/")
    console.print(f"  Report:   {url}/report")
    console.print(f"  Weekly:   {url}/weekly")
    console.print(f"  API:      {url}/api/events")
    serve_viewer(get_repository(), port)


app.command("replay", hidden=True)(serve)


@app.command()
def timeline(
    selector: Optional[str] = typer.Argument(None, help="'week' or YYYY-MM-DD (default: today)"),
):
    """Write a static HTML timeline and print its path."""
    try:
        path = write_timeline(selector)
    except ValueError:
        console.print(f"[red]Invalid timeline selector:[/] {selector} (expected 'week' or YYYY-MM-DD)")
        sys.exit(EXIT_CODE_ERROR)
    typer.echo(str(path))
    sys.exit(EXIT_CODE_OK)


@app.command()
def collect(
    hook: Optional[str] = typer.Argument(None, help="before, after, session-start or session-stop"),
):
    """Record one agent hook invocation (payload JSON on stdin)."""
    sys.exit(collector.main([hook] if hook else []))


def _entries_label(result) -> str:
    return "days" if result.format.value == "md" else "events"


def _display_stats(analytics: DiaryAnalytics) -> None:
    """Display analytics as a set of tables."""
    console.print("\n[bold]Claw Diary Stats & Analytics[/bold]")

    costs = Table(title="Cost Summary")
    costs.add_column("Period")
    costs.add_column("Cost", justify="right")
    costs.add_row("Today", format_cost(analytics.daily_cost))
    costs.add_row("This Week", format_cost(analytics.weekly_cost))
    console.print(costs)

    if analytics.cost_by_model:
        models = Table(title="Cost by Model (30 days)")
        models.add_column("Model")
        models.add_column("Cost", justify="right")
        for model, cost in sorted(analytics.cost_by_model.items(), key=lambda item: -item[1]):
            models.add_row(model, format_cost(cost))
        console.print(models)

    activity = Table(title="Activity (30 days)")
    activity.add_column("Metric")
    activity.add_column("Value", justify="right")
    activity.add_row("Sessions", str(analytics.total_sessions))
    activity.add_row("Tool Calls", str(analytics.total_tool_calls))
    activity.add_row("Avg Session", format_duration(analytics.avg_session_duration))
    activity.add_row("Failure Rate", f"{analytics.failure_rate * 100:.1f}%")
    console.print(activity)

    if analytics.top_tools:
        tools = Table(title="Top Tools (30 days)")
        tools.add_column("Tool")
        tools.add_column("Calls", justify="right")
        tools.add_column("Cost", justify="right")
        for tool in analytics.top_tools:
            tools.add_row(tool.name, str(tool.count), format_cost(tool.cost))
        console.print(tools)

    if analytics.patterns:
        console.print("\n[bold]Discovered Patterns[/bold]")
        for pattern in analytics.patterns:
            console.print(f"- {confidence_marker(pattern.confidence)} {pattern.description}", markup=False)
            if pattern.suggestion:
                console.print(f"  Suggestion: {pattern.suggestion}", markup=False)


if __name__ == "__main__":
    app()
