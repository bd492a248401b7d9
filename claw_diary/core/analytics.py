"""
Cost and activity analytics over the rolling 30-day window.

Computes the dashboard numbers and runs a fixed battery of pattern
heuristics. Each heuristic has a constant threshold; none adapt to volume.

Patterns:
- Busiest weekday: most tool calls on one weekday, > 10 calls (0.7)
- Cost trend: last 7 days vs the 7 before, beyond +/-20% (0.6)
- Workflow pair: most frequent consecutive tool pair, > 15 times (0.8)
- Peak hour: hour of day with most tool calls, always when any (0.7)
- Failing tool: tool with most failed results, > 5 failures (0.8)
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from claw_diary.storage.models import DiaryEvent, EventType, parse_timestamp
from claw_diary.storage.repository import EventRepository, get_repository

from .summarizer import count_tool_calls, most_frequent

WINDOW_DAYS = 30
WEEK_DAYS = 7
TOP_TOOLS_LIMIT = 10

BUSIEST_DAY_MIN_CALLS = 10
COST_TREND_THRESHOLD_PERCENT = 20
WORKFLOW_PAIR_MIN_COUNT = 15
FAILING_TOOL_MIN_FAILURES = 5


@dataclass(frozen=True)
class Pattern:
    """A detected recurring behavior."""
    description: str
    confidence: float  # 0..1
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"description": self.description, "confidence": self.confidence}
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        return data


@dataclass(frozen=True)
class CostPoint:
    date: str
    cost: float


@dataclass(frozen=True)
class ToolStats:
    name: str
    count: int
    cost: float


@dataclass(frozen=True)
class DiaryAnalytics:
    """Dashboard numbers for the 30-day window."""
    daily_cost: float
    weekly_cost: float
    cost_by_model: Dict[str, float]
    cost_by_tool: Dict[str, float]
    cost_trend: List[CostPoint]
    total_sessions: int
    total_tool_calls: int
    avg_session_duration: float  # ms
    top_tools: List[ToolStats]
    failure_rate: float  # 0..1
    patterns: List[Pattern] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form with the camelCase keys the viewer serves."""
        return {
            "dailyCost": self.daily_cost,
            "weeklyCost": self.weekly_cost,
            "costByModel": dict(self.cost_by_model),
            "costByToolType": dict(self.cost_by_tool),
            "costTrend": [{"date": p.date, "cost": p.cost} for p in self.cost_trend],
            "totalSessions": self.total_sessions,
            "totalToolCalls": self.total_tool_calls,
            "avgSessionDuration": self.avg_session_duration,
            "topTools": [{"name": t.name, "count": t.count, "cost": t.cost} for t in self.top_tools],
            "failureRate": self.failure_rate,
            "patterns": [p.to_dict() for p in self.patterns],
        }


def sum_cost(events: List[DiaryEvent]) -> float:
    return sum(e.cost for e in events)


def load_window(
    repository: EventRepository,
    today: date,
    days: int = WINDOW_DAYS,
) -> List[Tuple[date, List[DiaryEvent]]]:
    """Load each day of the window once.

    Returns:
        ``(day, events)`` pairs, newest day first
    """
    window = []
    for offset in range(days):
        day = today - timedelta(days=offset)
        window.append((day, repository.load(day)))
    return window


def generate_stats(today: Optional[date] = None, repository: Optional[EventRepository] = None) -> DiaryAnalytics:
    """Compute cost and activity statistics plus discovered patterns.

    Args:
        today: Last day of the window (defaults to the current date)
        repository: Event source (configured repository if omitted)

    Returns:
        DiaryAnalytics for the 30 days ending ``today``
    """
    today = today or date.today()
    repository = repository or get_repository()
    window = load_window(repository, today)

    today_events = window[0][1]
    week_events = [e for _, events in window[:WEEK_DAYS] for e in events]
    month_events = sorted(
        (e for _, events in window for e in events),
        key=lambda e: e.timestamp,
    )

    cost_by_model: Dict[str, float] = {}
    cost_by_tool: Dict[str, float] = {}
    for e in month_events:
        if e.token_usage is None:
            continue
        model = e.model or "unknown"
        cost_by_model[model] = cost_by_model.get(model, 0.0) + e.cost
        if e.type == EventType.TOOL_RESULT and e.tool_name:
            cost_by_tool[e.tool_name] = cost_by_tool.get(e.tool_name, 0.0) + e.cost

    cost_trend = [CostPoint(day.isoformat(), sum_cost(events)) for day, events in reversed(window)]

    tool_calls = [e for e in month_events if e.type == EventType.TOOL_CALL]
    tool_results = [e for e in month_events if e.type == EventType.TOOL_RESULT]
    failures = [e for e in tool_results if e.failed]

    # Only sessions that recorded an end with a duration count here.
    durations = [
        e.duration for e in month_events
        if e.type == EventType.SESSION_END and e.duration
    ]
    avg_session_duration = sum(durations) / len(durations) if durations else 0.0

    ranked = sorted(count_tool_calls(month_events).items(), key=lambda item: -item[1])
    top_tools = [
        ToolStats(name=name, count=count, cost=cost_by_tool.get(name, 0.0))
        for name, count in ranked[:TOP_TOOLS_LIMIT]
    ]

    return DiaryAnalytics(
        daily_cost=sum_cost(today_events),
        weekly_cost=sum_cost(week_events),
        cost_by_model=cost_by_model,
        cost_by_tool=cost_by_tool,
        cost_trend=cost_trend,
        total_sessions=len({e.session_id for e in month_events}),
        total_tool_calls=len(tool_calls),
        avg_session_duration=avg_session_duration,
        top_tools=top_tools,
        failure_rate=len(failures) / len(tool_results) if tool_results else 0.0,
        patterns=discover_patterns(month_events, cost_trend),
    )


# Pattern discovery

def discover_patterns(events: List[DiaryEvent], cost_trend: List[CostPoint]) -> List[Pattern]:
    """Run every heuristic over the window.

    Args:
        events: Window events sorted by timestamp
        cost_trend: Daily costs, oldest first

    Returns:
        Patterns in heuristic order; each heuristic contributes at most one
    """
    tool_calls = [e for e in events if e.type == EventType.TOOL_CALL]
    candidates = [
        busiest_weekday(tool_calls),
        cost_trend_pattern(cost_trend),
        workflow_pair(tool_calls),
        peak_hour(tool_calls),
        failing_tool(events),
    ]
    return [pattern for pattern in candidates if pattern is not None]


def busiest_weekday(tool_calls: List[DiaryEvent]) -> Optional[Pattern]:
    by_day: Dict[int, int] = {}
    for e in tool_calls:
        weekday = parse_timestamp(e.timestamp).weekday()
        by_day[weekday] = by_day.get(weekday, 0) + 1

    busiest = most_frequent(by_day)
    if busiest is None or busiest[1] <= BUSIEST_DAY_MIN_CALLS:
        return None
    weekday, count = busiest
    return Pattern(
        description=f"{calendar.day_name[weekday]} is your busiest day ({count} tool calls this month).",
        confidence=0.7,
    )


def cost_trend_pattern(cost_trend: List[CostPoint]) -> Optional[Pattern]:
    recent = [p.cost for p in cost_trend[-WEEK_DAYS:]]
    older = [p.cost for p in cost_trend[-2 * WEEK_DAYS:-WEEK_DAYS]]
    recent_avg = sum(recent) / max(len(recent), 1)
    older_avg = sum(older) / max(len(older), 1)
    if older_avg <= 0:
        return None

    change_percent = (recent_avg - older_avg) / older_avg * 100
    if change_percent > COST_TREND_THRESHOLD_PERCENT:
        return Pattern(
            description=f"Costs trending up {change_percent:.0f}% vs last week.",
            confidence=0.6,
            suggestion="Consider using lighter models for routine tasks.",
        )
    if change_percent < -COST_TREND_THRESHOLD_PERCENT:
        return Pattern(
            description=f"Costs trending down {abs(change_percent):.0f}% vs last week. Nice!",
            confidence=0.6,
        )
    return None


def workflow_pair(tool_calls: List[DiaryEvent]) -> Optional[Pattern]:
    named = [e.tool_name for e in tool_calls if e.tool_name]
    pairs: Dict[str, int] = {}
    for first, second in zip(named, named[1:]):
        pair = f"{first} → {second}"
        pairs[pair] = pairs.get(pair, 0) + 1

    top = most_frequent(pairs)
    if top is None or top[1] <= WORKFLOW_PAIR_MIN_COUNT:
        return None
    return Pattern(
        description=f"Common workflow pattern: {top[0]} ({top[1]} times).",
        confidence=0.8,
    )


def peak_hour(tool_calls: List[DiaryEvent]) -> Optional[Pattern]:
    by_hour: Dict[int, int] = {}
    for e in tool_calls:
        hour = parse_timestamp(e.timestamp).hour
        by_hour[hour] = by_hour.get(hour, 0) + 1

    peak = most_frequent(by_hour)
    if peak is None:
        return None
    hour, count = peak
    return Pattern(
        description=f"Peak activity hour: {hour}:00-{hour + 1}:00 ({count} tool calls).",
        confidence=0.7,
    )


def failing_tool(events: List[DiaryEvent]) -> Optional[Pattern]:
    failed: Dict[str, int] = {}
    for e in events:
        if e.failed and e.tool_name:
            failed[e.tool_name] = failed.get(e.tool_name, 0) + 1

    worst = most_frequent(failed)
    if worst is None or worst[1] <= FAILING_TOOL_MIN_FAILURES:
        return None
    name, count = worst
    return Pattern(
        description=f"{name} has the highest failure rate ({count} failures this month).",
        confidence=0.8,
        suggestion=f"Review how {name} is being called; it may need parameter adjustments.",
    )
