"""
Narrative rendering for diary summaries.

Turns aggregated summaries into fixed-structure markdown. Output depends
only on the summary passed in, so the same summary always renders to the
same bytes.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Sequence, Tuple

from claw_diary.storage.models import parse_timestamp

if TYPE_CHECKING:
    from .analytics import DiaryAnalytics
    from .summarizer import DailySummary, SessionSummary, ToolCount, WeeklySummary

NO_ACTIVITY_INSIGHT = "No agent activity recorded today."
STEADY_DAY_INSIGHT = "Another day of steady agent activity."
PLACEHOLDER_INSIGHTS = frozenset({NO_ACTIVITY_INSIGHT, STEADY_DAY_INSIGHT})

READ_FRAGMENTS = ("read", "glob", "grep")
WRITE_FRAGMENTS = ("edit", "write")


def uses_any(tool_names: Sequence[str], fragments: Sequence[str]) -> bool:
    """True if any lower-cased tool name contains any of ``fragments``."""
    return any(fragment in name.lower() for name in tool_names for fragment in fragments)


@dataclass(frozen=True)
class PhraseRule:
    """Emit ``phrase`` when a tool name contains one of ``fragments``."""
    fragments: Tuple[str, ...]
    phrase: str

    def matches(self, tool_names: Sequence[str]) -> bool:
        return uses_any(tool_names, self.fragments)


# Evaluated in order; every matching rule contributes its phrase.
DESCRIPTION_RULES: List[PhraseRule] = [
    PhraseRule(READ_FRAGMENTS, "explored and read code files"),
    PhraseRule(WRITE_FRAGMENTS, "wrote and edited files"),
    PhraseRule(("bash",), "ran shell commands"),
    PhraseRule(("web", "search"), "did web research"),
    PhraseRule(("lsp",), "used code intelligence"),
    PhraseRule(("task",), "dispatched sub-agents"),
]

# Evaluated in order; the first matching rule names the session.
CATEGORY_RULES: List[Tuple[Callable[[Sequence[str]], bool], str]] = [
    (lambda names: uses_any(names, WRITE_FRAGMENTS) and uses_any(names, ("bash",)), "Coding & Testing"),
    (lambda names: uses_any(names, WRITE_FRAGMENTS), "Code Editing"),
    (lambda names: uses_any(names, ("web", "search")), "Research"),
    (lambda names: uses_any(names, READ_FRAGMENTS), "Code Review"),
    (lambda names: uses_any(names, ("bash",)), "Shell Operations"),
]
DEFAULT_CATEGORY = "Mixed Activity"


def describe_session(tool_calls: int, top_tools: Sequence["ToolCount"], failures: int) -> str:
    """One-line description of a session from its most used tools."""
    names = [tool.name for tool in top_tools]
    parts = [rule.phrase for rule in DESCRIPTION_RULES if rule.matches(names)]
    if not parts:
        parts.append(f"used {', '.join(names)}")

    description = f"Made {tool_calls} tool calls. Primarily {', '.join(parts)}."
    if failures > 0:
        description += f" Encountered {failures} failure{'s' if failures > 1 else ''}."
    return description


def categorize_session(top_tools: Sequence["ToolCount"]) -> str:
    names = [tool.name for tool in top_tools]
    for condition, label in CATEGORY_RULES:
        if condition(names):
            return label
    return DEFAULT_CATEGORY


# Formatting

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_duration(ms: float) -> str:
    """Human duration: ``42s``, ``17min``, ``2h 5min`` or ``3h``."""
    if ms < 60_000:
        return f"{_round_half_up(ms / 1000)}s"
    if ms < 3_600_000:
        return f"{_round_half_up(ms / 60_000)}min"
    hours = int(ms // 3_600_000)
    mins = _round_half_up((ms % 3_600_000) / 60_000)
    return f"{hours}h {mins}min" if mins > 0 else f"{hours}h"


def format_cost(cost: float) -> str:
    return f"${cost:.2f}"


def format_tokens(tokens: int) -> str:
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}K"
    return str(tokens)


def format_time(timestamp: str) -> str:
    """Local ``HH:MM`` of an ISO timestamp."""
    moment = parse_timestamp(timestamp)
    return f"{moment.hour:02d}:{moment.minute:02d}"


def _plural(count: int, word: str) -> str:
    return f"{word}{'' if count == 1 else 's'}"


# Daily

def render_empty_day(date_str: str) -> str:
    return f"# {date_str} Agent Diary\n\nNo activity recorded today. Take a break!\n"


def render_daily_markdown(summary: "DailySummary") -> str:
    """Render a day: overview line, one block per session, insight bullets."""
    if summary.total_sessions == 0:
        return render_empty_day(summary.date)

    lines = [
        f"# {summary.date} Agent Diary",
        "",
        "## Overview",
        (
            f"Today: **{summary.total_sessions}** {_plural(summary.total_sessions, 'session')}, "
            f"**{format_duration(summary.total_duration)}** total, "
            f"**{format_tokens(summary.total_tokens)}** tokens (**{format_cost(summary.total_cost)}**), "
            f"**{summary.total_tool_calls}** tool calls."
        ),
        "",
        "## Timeline",
    ]
    for index, session in enumerate(summary.sessions, start=1):
        lines.extend(_render_session(index, session))

    lines.append("## Insights")
    lines.extend(f"- {insight}" for insight in summary.insights)
    lines.append("")
    return "\n".join(lines)


def _render_session(index: int, session: "SessionSummary") -> List[str]:
    heading = f"### Session {index} ({format_time(session.start_time)} - {format_time(session.end_time)})"
    if session.top_tools:
        heading += f": {categorize_session(session.top_tools)}"
    block = [
        heading,
        session.description,
        f"> {format_tokens(session.tokens)} tokens ({format_cost(session.cost)}) | {format_duration(session.duration)}",
    ]
    if session.top_tools:
        tools = ", ".join(f"{tool.name}×{tool.count}" for tool in session.top_tools)
        block.append(f"> Tools: {tools}")
    block.append("")
    return block


# Weekly

def render_weekly_markdown(weekly: "WeeklySummary") -> str:
    """Render the week: overview table, per-day table, notable insights."""
    days = weekly.days
    lines = [
        f"# Weekly Report: {weekly.week_start} to {weekly.week_end}",
        "",
        "## Weekly Overview",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Sessions | {weekly.total_sessions} |",
        f"| Total Time | {format_duration(weekly.total_duration)} |",
        f"| Total Tokens | {format_tokens(weekly.total_tokens)} |",
        f"| Total Cost | {format_cost(weekly.total_cost)} |",
        f"| Avg Cost/Day | {format_cost(weekly.total_cost / max(len(days), 1))} |",
        "",
        "## Daily Breakdown",
        "| Date | Sessions | Duration | Tokens | Cost |",
        "|------|----------|----------|--------|------|",
    ]
    for day in days:
        lines.append(
            f"| {day.date} | {day.total_sessions} | {format_duration(day.total_duration)} "
            f"| {format_tokens(day.total_tokens)} | {format_cost(day.total_cost)} |"
        )
    lines.append("")

    if weekly.insights:
        lines.append("## Weekly Insights")
        lines.extend(f"- {insight}" for insight in weekly.insights)
        lines.append("")
    return "\n".join(lines)


# Stats

SPARK_CHARS = "▁▂▃▄▅▆▇█"


def sparkline(values: Sequence[float]) -> str:
    peak = max(max(values, default=0.0), 0.01)
    return "".join(SPARK_CHARS[min(int(value / peak * 7), 7)] for value in values)


def confidence_marker(confidence: float) -> str:
    if confidence >= 0.8:
        return "[high]"
    if confidence >= 0.6:
        return "[medium]"
    return "[low]"


def render_stats_markdown(stats: "DiaryAnalytics") -> str:
    """Render the 30-day dashboard as markdown."""
    lines = [
        "# Claw Diary Stats & Analytics",
        "",
        "## Cost Summary",
        "| Period | Cost |",
        "|--------|------|",
        f"| Today | {format_cost(stats.daily_cost)} |",
        f"| This Week | {format_cost(stats.weekly_cost)} |",
        "",
    ]

    if stats.cost_by_model:
        lines += ["## Cost by Model (30 days)", "| Model | Cost |", "|-------|------|"]
        for model, cost in sorted(stats.cost_by_model.items(), key=lambda item: -item[1]):
            lines.append(f"| {model} | {format_cost(cost)} |")
        lines.append("")

    lines += [
        "## Activity (30 days)",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Sessions | {stats.total_sessions} |",
        f"| Tool Calls | {stats.total_tool_calls} |",
        f"| Avg Session | {format_duration(stats.avg_session_duration)} |",
        f"| Failure Rate | {stats.failure_rate * 100:.1f}% |",
        "",
    ]

    if stats.top_tools:
        lines += ["## Top Tools (30 days)", "| Tool | Calls | Cost |", "|------|-------|------|"]
        for tool in stats.top_tools:
            lines.append(f"| {tool.name} | {tool.count} | {format_cost(tool.cost)} |")
        lines.append("")

    if stats.patterns:
        lines.append("## Discovered Patterns")
        for pattern in stats.patterns:
            lines.append(f"- {confidence_marker(pattern.confidence)} {pattern.description}")
            if pattern.suggestion:
                lines.append(f"  Suggestion: {pattern.suggestion}")
        lines.append("")

    if stats.cost_trend:
        costs = [point.cost for point in stats.cost_trend]
        lines += [
            "## 30-Day Cost Trend",
            f"`{sparkline(costs)}`",
            f"Range: {format_cost(min(costs))} - {format_cost(max(max(costs), 0.01))}",
            "",
        ]
    return "\n".join(lines)


def first_insights(insights: Sequence[str], limit: int) -> List[str]:
    """Deduplicate ``insights`` in order, dropping placeholders, up to ``limit``."""
    unique: List[str] = []
    for insight in insights:
        if insight in PLACEHOLDER_INSIGHTS or insight in unique:
            continue
        unique.append(insight)
        if len(unique) == limit:
            break
    return unique
