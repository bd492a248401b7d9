"""
Data directory layout.

Resolves where the diary keeps its logs, state files and exports.
"""

import os
from datetime import date
from pathlib import Path

DATA_DIR_ENV = "CLAW_DIARY_HOME"
EVENTS_DIRNAME = "events"
EXPORTS_DIRNAME = "exports"
LOG_SUFFIX = ".jsonl"


def get_data_dir() -> Path:
    """Return the diary's root directory.

    ``$CLAW_DIARY_HOME`` wins when set, otherwise ``~/.claw-diary``.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".claw-diary"


def log_file_name(day: date) -> str:
    """File name of the daily log for ``day`` (local calendar date)."""
    return f"{day:%Y-%m-%d}{LOG_SUFFIX}"


def parse_log_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` (optionally with the log suffix) into a date.

    Raises:
        ValueError: If ``value`` is not a valid date
    """
    stem = value[: -len(LOG_SUFFIX)] if value.endswith(LOG_SUFFIX) else value
    return date.fromisoformat(stem)
