"""
Daily and weekly aggregation of diary events.

Groups a day's events into sessions, totals them, and derives the insights
that the narrative renderer turns into markdown.
"""

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from claw_diary.storage.models import DiaryEvent, EventType, parse_timestamp
from claw_diary.storage.repository import EventRepository, get_repository

from .narrative import (
    NO_ACTIVITY_INSIGHT,
    READ_FRAGMENTS,
    STEADY_DAY_INSIGHT,
    WRITE_FRAGMENTS,
    describe_session,
    first_insights,
    format_cost,
    render_daily_markdown,
    render_empty_day,
    render_weekly_markdown,
)

TOP_TOOLS_PER_SESSION = 5
WEEKLY_INSIGHT_LIMIT = 8


@dataclass(frozen=True)
class ToolCount:
    name: str
    count: int


@dataclass(frozen=True)
class SessionSummary:
    """Totals for one session within one day."""
    session_id: str
    start_time: str
    end_time: str
    duration: int  # ms between first and last recorded event
    tool_calls: int
    tokens: int
    cost: float
    top_tools: List[ToolCount]
    failures: int
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "toolCalls": self.tool_calls,
            "tokens": self.tokens,
            "cost": self.cost,
            "topTools": [{"name": t.name, "count": t.count} for t in self.top_tools],
            "failures": self.failures,
            "description": self.description,
        }


@dataclass(frozen=True)
class DailySummary:
    """Aggregated view of one calendar day."""
    date: str  # YYYY-MM-DD
    total_sessions: int
    total_duration: int
    total_tokens: int
    total_cost: float
    total_tool_calls: int
    sessions: List[SessionSummary]
    insights: List[str]
    markdown: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "totalSessions": self.total_sessions,
            "totalDuration": self.total_duration,
            "totalTokens": self.total_tokens,
            "totalCost": self.total_cost,
            "totalToolCalls": self.total_tool_calls,
            "sessions": [s.to_dict() for s in self.sessions],
            "insights": list(self.insights),
            "markdown": self.markdown,
        }


@dataclass(frozen=True)
class WeeklySummary:
    """Monday-to-today roll-up of daily summaries."""
    week_start: str
    week_end: str
    days: List[DailySummary]
    insights: List[str] = field(default_factory=list)

    @property
    def total_sessions(self) -> int:
        return sum(day.total_sessions for day in self.days)

    @property
    def total_tokens(self) -> int:
        return sum(day.total_tokens for day in self.days)

    @property
    def total_cost(self) -> float:
        return sum(day.total_cost for day in self.days)

    @property
    def total_duration(self) -> int:
        return sum(day.total_duration for day in self.days)

    @property
    def markdown(self) -> str:
        return render_weekly_markdown(self)


def most_frequent(counts: Dict[str, int]) -> Optional[Tuple[str, int]]:
    """Entry with the highest count; ties go to the first inserted."""
    best = None
    for name, count in counts.items():
        if best is None or count > best[1]:
            best = (name, count)
    return best


def group_by_session(events: Iterable[DiaryEvent]) -> Dict[str, List[DiaryEvent]]:
    sessions: Dict[str, List[DiaryEvent]] = {}
    for event in events:
        sessions.setdefault(event.session_id, []).append(event)
    return sessions


def count_tool_calls(events: Iterable[DiaryEvent]) -> Dict[str, int]:
    """Tool-call counts by tool name, in first-encounter order."""
    counts: Dict[str, int] = {}
    for event in events:
        if event.type == EventType.TOOL_CALL and event.tool_name:
            counts[event.tool_name] = counts.get(event.tool_name, 0) + 1
    return counts


def summarize_session(session_id: str, events: List[DiaryEvent]) -> SessionSummary:
    """Summarize one session's events.

    Args:
        session_id: Session identifier shared by ``events``
        events: Non-empty list of the session's events, any order

    Returns:
        SessionSummary with totals and a templated description
    """
    ordered = sorted(events, key=lambda e: e.timestamp)
    start_time = ordered[0].timestamp
    end_time = ordered[-1].timestamp

    tool_calls = [e for e in ordered if e.type == EventType.TOOL_CALL]
    failures = sum(1 for e in ordered if e.failed)

    # sorted() is stable, so equal counts keep encounter order
    ranked = sorted(count_tool_calls(tool_calls).items(), key=lambda item: -item[1])
    top_tools = [ToolCount(name, count) for name, count in ranked[:TOP_TOOLS_PER_SESSION]]

    duration = parse_timestamp(end_time) - parse_timestamp(start_time)

    return SessionSummary(
        session_id=session_id,
        start_time=start_time,
        end_time=end_time,
        duration=int(duration.total_seconds() * 1000),
        tool_calls=len(tool_calls),
        tokens=sum(e.tokens for e in ordered),
        cost=sum(e.cost for e in ordered),
        top_tools=top_tools,
        failures=failures,
        description=describe_session(len(tool_calls), top_tools, failures),
    )


# Insights

@dataclass(frozen=True)
class DayStats:
    """Numbers the insight rules look at."""
    session_count: int
    tool_calls: int
    failures: int
    cost: float
    top_tool: Optional[Tuple[str, int]]
    read_ops: int
    write_ops: int

    @property
    def failure_rate(self) -> float:
        """Failures as a percentage of tool calls."""
        return self.failures / self.tool_calls * 100 if self.tool_calls else 0.0


@dataclass(frozen=True)
class InsightRule:
    """A day-level insight that fires independently of the others."""
    name: str
    condition: Callable[[DayStats], bool]
    message: Callable[[DayStats], str]


INSIGHT_RULES: List[InsightRule] = [
    InsightRule(
        "high_failure_rate",
        lambda s: s.tool_calls > 0 and s.failure_rate > 20,
        lambda s: f"High failure rate today ({s.failure_rate:.0f}%). Consider running tests before making changes.",
    ),
    InsightRule(
        "perfect_run",
        lambda s: s.tool_calls > 10 and s.failures == 0,
        lambda s: f"Perfect run today: zero failures across {s.tool_calls} tool calls!",
    ),
    InsightRule(
        "dominant_tool",
        lambda s: s.top_tool is not None and s.top_tool[1] > 5,
        lambda s: f"Most used tool today: {s.top_tool[0]} ({s.top_tool[1]} times).",
    ),
    InsightRule(
        "many_sessions",
        lambda s: s.session_count >= 3,
        lambda s: f"Productive day with {s.session_count} sessions. You're on a roll!",
    ),
    InsightRule(
        "high_cost",
        lambda s: s.cost > 5,
        lambda s: f"Spent {format_cost(s.cost)} today. Consider using lighter models for simple tasks.",
    ),
    InsightRule(
        "research_heavy",
        lambda s: s.read_ops > s.write_ops * 3 and s.read_ops > 10,
        lambda s: f"Research-heavy day: {s.read_ops} reads vs {s.write_ops} writes. Lots of exploration!",
    ),
    InsightRule(
        "writing_heavy",
        lambda s: s.write_ops > s.read_ops and s.write_ops > 5,
        lambda s: f"Writing-heavy day: {s.write_ops} writes vs {s.read_ops} reads. Ship it!",
    ),
]


def _count_matching_calls(events: Iterable[DiaryEvent], fragments: Tuple[str, ...]) -> int:
    return sum(
        1 for e in events
        if e.type == EventType.TOOL_CALL and e.tool_name
        and any(fragment in e.tool_name.lower() for fragment in fragments)
    )


def day_stats(sessions: List[SessionSummary], events: List[DiaryEvent]) -> DayStats:
    return DayStats(
        session_count=len(sessions),
        tool_calls=sum(s.tool_calls for s in sessions),
        failures=sum(s.failures for s in sessions),
        cost=sum(s.cost for s in sessions),
        top_tool=most_frequent(count_tool_calls(events)),
        read_ops=_count_matching_calls(events, READ_FRAGMENTS),
        write_ops=_count_matching_calls(events, WRITE_FRAGMENTS),
    )


def generate_insights(stats: DayStats, rules: Optional[List[InsightRule]] = None) -> List[str]:
    """Evaluate the insight rules in order.

    Returns:
        Messages of every rule that fired, or the steady-day fallback
    """
    insights = [rule.message(stats) for rule in (rules or INSIGHT_RULES) if rule.condition(stats)]
    return insights or [STEADY_DAY_INSIGHT]


# Daily / weekly

def summarize_day(day: date, repository: Optional[EventRepository] = None) -> DailySummary:
    """Build the summary for one calendar day.

    Args:
        day: Local calendar date to summarize
        repository: Event source (configured repository if omitted)

    Returns:
        DailySummary, including its rendered markdown
    """
    repository = repository or get_repository()
    events = repository.load(day)
    date_str = day.isoformat()

    if not events:
        return DailySummary(
            date=date_str,
            total_sessions=0,
            total_duration=0,
            total_tokens=0,
            total_cost=0.0,
            total_tool_calls=0,
            sessions=[],
            insights=[NO_ACTIVITY_INSIGHT],
            markdown=render_empty_day(date_str),
        )

    sessions = [summarize_session(sid, evts) for sid, evts in group_by_session(events).items()]
    sessions.sort(key=lambda s: s.start_time)

    summary = DailySummary(
        date=date_str,
        total_sessions=len(sessions),
        total_duration=sum(s.duration for s in sessions),
        total_tokens=sum(s.tokens for s in sessions),
        total_cost=sum(s.cost for s in sessions),
        total_tool_calls=sum(s.tool_calls for s in sessions),
        sessions=sessions,
        insights=generate_insights(day_stats(sessions, events)),
    )
    return replace(summary, markdown=render_daily_markdown(summary))


def week_start(today: date) -> date:
    """Most recent Monday on or before ``today``."""
    return today - timedelta(days=today.weekday())


def summarize_week(today: Optional[date] = None, repository: Optional[EventRepository] = None) -> WeeklySummary:
    """Summarize every day from this week's Monday through ``today``."""
    today = today or date.today()
    repository = repository or get_repository()
    monday = week_start(today)

    days = []
    current = monday
    while current <= today:
        days.append(summarize_day(current, repository))
        current += timedelta(days=1)

    insights = first_insights(
        [insight for day in days for insight in day.insights],
        WEEKLY_INSIGHT_LIMIT,
    )
    return WeeklySummary(
        week_start=monday.isoformat(),
        week_end=today.isoformat(),
        days=days,
        insights=insights,
    )


def generate_daily_summary(day: Optional[date] = None, repository: Optional[EventRepository] = None) -> DailySummary:
    return summarize_day(day or date.today(), repository)


def generate_weekly_summary(today: Optional[date] = None, repository: Optional[EventRepository] = None) -> str:
    """Markdown report for the current week."""
    return summarize_week(today, repository).markdown
