"""
Snapshot exports, static timeline files and data removal.

Exports are written under ``<data_dir>/exports`` and the timeline page under
``<data_dir>/output``; neither touches the event logs. Clearing deletes the whole data
directory and requires explicit confirmation.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from claw_diary.core.summarizer import summarize_day
from claw_diary.storage.models import DiaryEvent
from claw_diary.storage.paths import EXPORTS_DIRNAME, parse_log_date
from claw_diary.storage.repository import EventRepository, get_repository

from .html import render_timeline_html

logger = logging.getLogger(__name__)

EXPORT_TITLE = "Diary Export"
MARKDOWN_HEADER = "# Claw Diary Export"
SECTION_SEPARATOR = "---\n"
OUTPUT_DIRNAME = "output"
TIMELINE_FILENAME = "timeline.html"
WEEK_DAYS = 7


class ExportFormat(Enum):
    MARKDOWN = "md"
    HTML = "html"
    JSON = "json"

    @classmethod
    def parse(cls, value: str) -> "ExportFormat":
        """Look up a format by its file extension.

        Raises:
            ValueError: If ``value`` is not a supported format
        """
        try:
            return cls(value.lower())
        except ValueError:
            supported = ", ".join(f.value for f in cls)
            raise ValueError(f"Unsupported export format '{value}' (expected one of: {supported})") from None


@dataclass(frozen=True)
class ExportResult:
    """Where an export went and how much it holds."""
    path: Path
    format: ExportFormat
    entries: int  # events, or days for markdown


def export_timestamp(moment: datetime) -> str:
    """File-name-safe UTC timestamp, e.g. ``2026-03-02T10-15-00-123Z``."""
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z").replace(":", "-").replace(".", "-")


def export_data(
    export_format: str = "md",
    repository: Optional[EventRepository] = None,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> Optional[ExportResult]:
    """Write a snapshot of all stored data.

    ``md`` concatenates the rendered daily summary of every day with a log
    file; ``json`` writes every event as a pretty-printed array; ``html``
    writes one static timeline covering every event.

    Args:
        export_format: ``md``, ``html`` or ``json``
        repository: Event source (configured repository if omitted)
        clock: Source of the timestamp embedded in the file name

    Returns:
        ExportResult, or None when a markdown export finds no logs at all

    Raises:
        ValueError: If ``export_format`` is not supported
    """
    fmt = ExportFormat.parse(export_format)
    repository = repository or get_repository()

    out_dir = repository.data_dir / EXPORTS_DIRNAME
    out_path = out_dir / f"diary-export-{export_timestamp(clock())}.{fmt.value}"

    if fmt == ExportFormat.MARKDOWN:
        dates = repository.list_dates()
        if not dates:
            logger.info("No event logs to export")
            return None
        sections = [MARKDOWN_HEADER, ""]
        for day in dates:
            summary = summarize_day(day, repository)
            sections.append(summary.markdown)
            sections.append(SECTION_SEPARATOR)
        content = "\n".join(sections)
        entries = len(dates)
    else:
        events = repository.load_all()
        entries = len(events)
        if fmt == ExportFormat.JSON:
            content = json.dumps([e.to_dict() for e in events], indent=2, ensure_ascii=False)
        else:
            content = render_timeline_html(events, EXPORT_TITLE)

    out_dir.mkdir(parents=True, exist_ok=True)
    out_path.write_text(content, encoding="utf-8")
    logger.info("Exported %s to %s", fmt.value, out_path)
    return ExportResult(path=out_path, format=fmt, entries=entries)


def clear_data(confirmed: bool, repository: Optional[EventRepository] = None) -> bool:
    """Delete the whole data directory.

    Args:
        confirmed: Must be True; anything else is a no-op
        repository: Repository whose data directory is removed

    Returns:
        True if data was deleted
    """
    if not confirmed:
        return False
    repository = repository or get_repository()
    deleted = repository.purge()
    if deleted:
        logger.info("Deleted diary data in %s", repository.data_dir)
    return deleted


def select_timeline(
    selector: Optional[str],
    repository: EventRepository,
    today: Optional[date] = None,
) -> Tuple[List[DiaryEvent], str]:
    """Resolve a timeline selector to its events and title.

    ``"week"`` covers the last seven days, a ``YYYY-MM-DD`` string covers
    that day, and None covers today.

    Raises:
        ValueError: If ``selector`` is neither ``"week"`` nor a valid date
    """
    today = today or date.today()
    if selector == "week":
        return repository.load_range(WEEK_DAYS, today), "This Week"
    day = parse_log_date(selector) if selector else today
    return repository.load(day), day.isoformat()


def write_timeline(
    selector: Optional[str] = None,
    repository: Optional[EventRepository] = None,
    today: Optional[date] = None,
) -> Path:
    """Render a static timeline page to ``<data_dir>/output/timeline.html``."""
    repository = repository or get_repository()
    events, title = select_timeline(selector, repository, today)

    out_path = repository.data_dir / OUTPUT_DIRNAME / TIMELINE_FILENAME
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(render_timeline_html(events, title), encoding="utf-8")
    logger.info("Wrote timeline with %d events to %s", len(events), out_path)
    return out_path
