"""
Tests for 30-day analytics and pattern discovery.
"""

import calendar
from datetime import date, timedelta

import pytest

from claw_diary.core.analytics import (
    WINDOW_DAYS,
    Pattern,
    generate_stats,
)
from claw_diary.storage.models import EventType

TODAY = date(2026, 3, 15)


def _days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


class TestGenerateStats:
    """Test the dashboard numbers."""

    def test_empty_window(self, repository):
        """Verify an empty diary produces zeros and no patterns."""
        stats = generate_stats(TODAY, repository)

        assert stats.daily_cost == 0.0
        assert stats.weekly_cost == 0.0
        assert stats.total_sessions == 0
        assert stats.total_tool_calls == 0
        assert stats.failure_rate == 0.0
        assert stats.avg_session_duration == 0.0
        assert stats.patterns == []
        assert len(stats.cost_trend) == WINDOW_DAYS
        assert stats.cost_trend[-1].date == "2026-03-15"
        assert stats.cost_trend[0].date == "2026-02-14"

    def test_costs_and_activity(self, repository, make_event, add_events):
        """Verify cost windows, breakdowns and activity totals."""
        add_events(
            TODAY,
            make_event(TODAY, tool_name="Bash", session_id="a"),
            make_event(TODAY, EventType.TOOL_RESULT, tool_name="Bash", session_id="a", minute=1,
                       success=True, cost=1.0, tokens=(10, 10), model="gpt-4o"),
            make_event(TODAY, EventType.SESSION_END, session_id="a", minute=2, duration=120_000),
        )
        add_events(
            _days_ago(3),
            make_event(_days_ago(3), tool_name="Read", session_id="b"),
            make_event(_days_ago(3), EventType.TOOL_RESULT, tool_name="Read", session_id="b", minute=1,
                       success=False, cost=2.0, tokens=(10, 10)),
            make_event(_days_ago(3), EventType.SESSION_END, session_id="b", minute=5, duration=60_000),
        )
        add_events(
            _days_ago(20),
            make_event(_days_ago(20), EventType.TOOL_RESULT, tool_name="Read", session_id="c",
                       success=True, cost=4.0, tokens=(10, 10), model="gpt-4o"),
        )
        add_events(
            _days_ago(40),
            make_event(_days_ago(40), EventType.TOOL_RESULT, tool_name="Read", session_id="old",
                       success=True, cost=100.0, tokens=(10, 10)),
        )
        stats = generate_stats(TODAY, repository)

        assert stats.daily_cost == pytest.approx(1.0)
        assert stats.weekly_cost == pytest.approx(3.0)
        assert stats.cost_by_model == pytest.approx({"gpt-4o": 5.0, "unknown": 2.0})
        assert stats.cost_by_tool == pytest.approx({"Bash": 1.0, "Read": 6.0})
        assert stats.total_sessions == 3
        assert stats.total_tool_calls == 2
        assert stats.avg_session_duration == pytest.approx(90_000)
        assert stats.failure_rate == pytest.approx(1 / 3)
        assert [(t.name, t.count) for t in stats.top_tools] == [("Read", 1), ("Bash", 1)]
        assert sum(p.cost for p in stats.cost_trend) == pytest.approx(7.0)

    def test_to_dict_keys(self, repository):
        """Verify the JSON shape served by the viewer."""
        data = generate_stats(TODAY, repository).to_dict()
        assert set(data) == {
            "dailyCost", "weeklyCost", "costByModel", "costByToolType", "costTrend",
            "totalSessions", "totalToolCalls", "avgSessionDuration", "topTools",
            "failureRate", "patterns",
        }


class TestPatterns:
    """Test the pattern heuristics and their thresholds."""

    def _daily_cost(self, make_event, add_events, day, cost):
        add_events(day, make_event(day, EventType.TOOL_RESULT, tool_name="Read",
                                   success=True, cost=cost, tokens=(1, 1)))

    def test_cost_trending_up(self, repository, make_event, add_events):
        """Verify a doubled weekly spend is reported at 0.6 confidence."""
        for n in range(7):
            self._daily_cost(make_event, add_events, _days_ago(n), 1.0)
        for n in range(7, 14):
            self._daily_cost(make_event, add_events, _days_ago(n), 0.5)

        patterns = generate_stats(TODAY, repository).patterns
        assert patterns == [Pattern(
            description="Costs trending up 100% vs last week.",
            confidence=0.6,
            suggestion="Consider using lighter models for routine tasks.",
        )]

    def test_cost_trending_down(self, repository, make_event, add_events):
        """Verify a halved weekly spend is reported without a suggestion."""
        for n in range(7):
            self._daily_cost(make_event, add_events, _days_ago(n), 0.5)
        for n in range(7, 14):
            self._daily_cost(make_event, add_events, _days_ago(n), 1.0)

        patterns = generate_stats(TODAY, repository).patterns
        assert patterns == [Pattern("Costs trending down 50% vs last week. Nice!", 0.6)]

    def test_small_cost_change_is_ignored(self, repository, make_event, add_events):
        """Verify a change within 20% is not reported."""
        for n in range(7):
            self._daily_cost(make_event, add_events, _days_ago(n), 1.1)
        for n in range(7, 14):
            self._daily_cost(make_event, add_events, _days_ago(n), 1.0)

        assert generate_stats(TODAY, repository).patterns == []

    def test_busiest_weekday_threshold(self, repository, make_event, add_events):
        """Verify the weekday pattern needs more than ten calls."""
        add_events(TODAY, *[make_event(TODAY, tool_name=f"Tool{i}", minute=i) for i in range(10)])
        descriptions = [p.description for p in generate_stats(TODAY, repository).patterns]
        assert not any("busiest day" in d for d in descriptions)

        add_events(TODAY, make_event(TODAY, tool_name="Tool10", minute=10))
        patterns = generate_stats(TODAY, repository).patterns
        weekday = calendar.day_name[TODAY.weekday()]
        assert Pattern(f"{weekday} is your busiest day (11 tool calls this month).", 0.7) in patterns

    def test_workflow_pair(self, repository, make_event, add_events):
        """Verify a consecutive pair seen more than fifteen times is reported."""
        calls = []
        for i in range(17):
            calls.append(make_event(TODAY, tool_name="Read", hour=9, minute=i, second=0))
            calls.append(make_event(TODAY, tool_name="Edit", hour=9, minute=i, second=30))
        add_events(TODAY, *calls)

        patterns = generate_stats(TODAY, repository).patterns
        assert Pattern("Common workflow pattern: Read → Edit (17 times).", 0.8) in patterns

    def test_workflow_pair_threshold(self, repository, make_event, add_events):
        """Verify fifteen repetitions are not enough."""
        calls = []
        for i in range(15):
            calls.append(make_event(TODAY, tool_name="Read", hour=9, minute=i, second=0))
            calls.append(make_event(TODAY, tool_name="Edit", hour=9, minute=i, second=30))
        add_events(TODAY, *calls)

        descriptions = [p.description for p in generate_stats(TODAY, repository).patterns]
        assert not any(d.startswith("Common workflow pattern") for d in descriptions)

    def test_peak_hour(self, repository, make_event, add_events):
        """Verify the busiest hour is reported whenever calls exist."""
        add_events(
            TODAY,
            make_event(TODAY, tool_name="Read", hour=9),
            make_event(TODAY, tool_name="Read", hour=14),
            make_event(TODAY, tool_name="Edit", hour=14, minute=30),
        )
        patterns = generate_stats(TODAY, repository).patterns
        assert patterns == [Pattern("Peak activity hour: 14:00-15:00 (2 tool calls).", 0.7)]

    def test_failing_tool_threshold(self, repository, make_event, add_events):
        """Verify the failing-tool pattern needs more than five failures."""
        failures = [
            make_event(TODAY, EventType.TOOL_RESULT, tool_name="Bash", minute=i, success=False)
            for i in range(5)
        ]
        add_events(TODAY, *failures)
        assert generate_stats(TODAY, repository).patterns == []

        add_events(TODAY, make_event(TODAY, EventType.TOOL_RESULT, tool_name="Bash", minute=5, success=False))
        patterns = generate_stats(TODAY, repository).patterns
        assert patterns == [Pattern(
            "Bash has the highest failure rate (6 failures this month).",
            0.8,
            "Review how Bash is being called; it may need parameter adjustments.",
        )]
        assert generate_stats(TODAY, repository).failure_rate == 1.0
