"""
Repository pattern for data access.

Handles the append-only daily event logs under ``<data_dir>/events``.
"""

import logging
import shutil
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional

from claw_diary.config.loader import load_config

from .models import DiaryEvent
from .paths import EVENTS_DIRNAME, LOG_SUFFIX, log_file_name, parse_log_date

logger = logging.getLogger(__name__)


class EventRepository:
    """Repository for reading and appending diary events.

    Each calendar day (local time) has one JSONL file. Files are only ever
    appended to; readers tolerate partial trailing lines from a writer that
    crashed or is still writing.
    """

    def __init__(self, data_dir: Path):
        """Initialize the repository with a data directory.

        Args:
            data_dir: Root of the diary's storage tree
        """
        self.data_dir = Path(data_dir)

    @property
    def events_dir(self) -> Path:
        return self.data_dir / EVENTS_DIRNAME

    def log_path(self, day: date) -> Path:
        return self.events_dir / log_file_name(day)

    def append(self, event: DiaryEvent, for_date: Optional[date] = None) -> Path:
        """Append a single event to the day's log.

        The serialized line goes out in one write call so concurrent readers
        see either nothing or the whole line.

        Args:
            event: The event to record
            for_date: Day whose log receives the event (today if omitted)

        Returns:
            Path of the log file written to
        """
        path = self.log_path(for_date or date.today())
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'a', encoding='utf-8') as f:
            f.write(event.to_line() + "\n")
        return path

    def load(self, day: date) -> List[DiaryEvent]:
        """Load all parsable events from one day's log.

        Returns:
            Events in file order (empty if the log does not exist)
        """
        return self._load_file(self.log_path(day))

    def load_range(self, days: int, today: Optional[date] = None) -> List[DiaryEvent]:
        """Load the last ``days`` calendar days, today inclusive.

        Returns:
            Events from all days, sorted by timestamp string
        """
        today = today or date.today()
        events: List[DiaryEvent] = []
        for offset in range(days):
            events.extend(self.load(today - timedelta(days=offset)))
        return sorted(events, key=lambda e: e.timestamp)

    def list_dates(self) -> List[date]:
        """Dates that have a log file, oldest first."""
        try:
            names = [p.name for p in self.events_dir.iterdir()]
        except FileNotFoundError:
            return []

        dates = []
        for name in names:
            if not name.endswith(LOG_SUFFIX):
                continue
            try:
                dates.append(parse_log_date(name))
            except ValueError:
                logger.debug("Ignoring unexpected file in events dir: %s", name)
        return sorted(dates)

    def load_all(self) -> List[DiaryEvent]:
        """Load every stored event, day by day in date order."""
        events: List[DiaryEvent] = []
        for day in self.list_dates():
            events.extend(self.load(day))
        return events

    def search(self, query: str) -> List[DiaryEvent]:
        """Find events whose serialized form contains ``query``, ignoring case."""
        needle = query.lower()
        return [e for e in self.load_all() if needle in e.to_line().lower()]

    def purge(self) -> bool:
        """Delete the whole data directory tree.

        Returns:
            True if something was deleted, False if there was nothing to delete
        """
        if not self.data_dir.exists():
            return False
        shutil.rmtree(self.data_dir)
        return True

    def _load_file(self, path: Path) -> List[DiaryEvent]:
        try:
            with open(path, 'r', encoding='utf-8', errors='replace') as f:
                lines = f.read().split("\n")
        except FileNotFoundError:
            return []

        events = []
        for lineno, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                events.append(DiaryEvent.from_line(line))
            except ValueError as e:
                logger.debug("Skipping unparsable line %s:%d: %s", path.name, lineno, e)
        return events


def get_repository(data_dir: Optional[Path] = None) -> EventRepository:
    """Get a repository for the configured data directory.

    The config is loaded on every call; hook processes are short-lived and
    must pick up config changes immediately.

    Args:
        data_dir: Explicit data directory (skips config resolution)

    Returns:
        An EventRepository instance
    """
    if data_dir is not None:
        return EventRepository(data_dir)
    return EventRepository(load_config().data_dir)


def load_events_for_date(day: date) -> List[DiaryEvent]:
    """Load one day's events from the configured repository."""
    return get_repository().load(day)


def load_events_for_days(days: int) -> List[DiaryEvent]:
    """Load the last ``days`` days from the configured repository, sorted."""
    return get_repository().load_range(days)


def search_events(query: str) -> List[DiaryEvent]:
    """Case-insensitive substring search over all stored events."""
    return get_repository().search(query)
