"""
Shared fixtures for the test suite.
"""

import itertools
from datetime import date, datetime
from pathlib import Path

import pytest

from claw_diary.config.loader import DiaryConfig, RecordingLevel
from claw_diary.core.token_counter import TokenUsage
from claw_diary.storage.models import DiaryEvent, EventResult, EventType, format_timestamp
from claw_diary.storage.paths import DATA_DIR_ENV
from claw_diary.storage.repository import EventRepository


@pytest.fixture
def data_dir(tmp_path, monkeypatch) -> Path:
    """An isolated data directory, also exported as ``$CLAW_DIARY_HOME``."""
    root = tmp_path / "diary"
    monkeypatch.setenv(DATA_DIR_ENV, str(root))
    return root


@pytest.fixture
def repository(data_dir) -> EventRepository:
    return EventRepository(data_dir)


@pytest.fixture
def config(data_dir) -> DiaryConfig:
    return DiaryConfig(data_dir=data_dir, recording_level=RecordingLevel.FULL)


def local_timestamp(day: date, hour: int = 10, minute: int = 0, second: int = 0) -> str:
    """Stored timestamp for a local wall-clock time on ``day``."""
    return format_timestamp(datetime(day.year, day.month, day.day, hour, minute, second).astimezone())


@pytest.fixture
def make_event():
    """Factory for events with sensible defaults."""
    counter = itertools.count(1)

    def _make(
        day: date,
        event_type: EventType = EventType.TOOL_CALL,
        tool_name=None,
        session_id: str = "session-1",
        hour: int = 10,
        minute: int = 0,
        second: int = 0,
        success=None,
        cost=None,
        tokens=(0, 0),
        model=None,
        duration=None,
        tool_args=None,
    ) -> DiaryEvent:
        result = EventResult(success=success) if success is not None else None
        usage = None
        if cost is not None:
            usage = TokenUsage(input=tokens[0], output=tokens[1], estimated_cost=cost)
        return DiaryEvent(
            id=f"event-{next(counter)}",
            timestamp=local_timestamp(day, hour, minute, second),
            session_id=session_id,
            type=event_type,
            tool_name=tool_name,
            tool_args=tool_args,
            result=result,
            token_usage=usage,
            model=model,
            duration=duration,
        )

    return _make


@pytest.fixture
def add_events(repository):
    """Append events to the log of the day they belong to."""

    def _add(day: date, *events: DiaryEvent) -> None:
        for event in events:
            repository.append(event, for_date=day)

    return _add
