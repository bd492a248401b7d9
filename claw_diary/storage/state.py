"""
Cross-invocation state for the collector.

Each hook call is a separate process, so the current session and the calls
awaiting a result live in two small JSON files under the data directory.
Both are read-or-default then overwritten, without locking: two hook
processes racing on the same file can lose an update, which costs a
duration pairing but never touches the event log.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SESSION_FILENAME = "current-session.json"
PENDING_FILENAME = "pending-calls.json"


@dataclass(frozen=True)
class CurrentSession:
    """Pointer to the most recently started session."""
    session_id: str
    start_time: str  # ISO 8601


@dataclass(frozen=True)
class PendingCall:
    """A tool call waiting for its matching result."""
    timestamp: str  # ISO 8601
    tool_name: str


def pending_key(tool_name: str, call_id: str) -> str:
    return f"{tool_name}:{call_id}"


class SessionStore:
    """Persisted current-session pointer."""

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / SESSION_FILENAME

    def get(self) -> Optional[CurrentSession]:
        """Return the current session, or None if absent, cleared or corrupt."""
        data = _read_json(self.path)
        if not isinstance(data, dict):
            return None
        session_id = data.get("sessionId")
        start_time = data.get("startTime")
        if not isinstance(session_id, str) or not isinstance(start_time, str):
            return None
        return CurrentSession(session_id=session_id, start_time=start_time)

    def set(self, session_id: str, start_time: str) -> None:
        _write_json(self.path, {"sessionId": session_id, "startTime": start_time})

    def clear(self) -> None:
        """Empty the pointer file.

        The file is truncated rather than removed so a concurrent invocation
        never sees it vanish and reappear.
        """
        if self.path.exists():
            self.path.write_text("", encoding="utf-8")


class PendingCallStore:
    """Persisted map of ``"<toolName>:<callId>"`` to pending calls."""

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / PENDING_FILENAME

    def load_all(self) -> Dict[str, PendingCall]:
        data = _read_json(self.path)
        if not isinstance(data, dict):
            return {}
        calls = {}
        for key, record in data.items():
            if not isinstance(record, dict):
                continue
            timestamp = record.get("timestamp")
            tool_name = record.get("toolName")
            if isinstance(timestamp, str) and isinstance(tool_name, str):
                calls[key] = PendingCall(timestamp=timestamp, tool_name=tool_name)
        return calls

    def add(self, key: str, call: PendingCall) -> None:
        calls = self.load_all()
        calls[key] = call
        self._save(calls)

    def remove_and_save(self, key: str) -> None:
        calls = self.load_all()
        if calls.pop(key, None) is not None:
            self._save(calls)

    def pop_earliest(self, tool_name: str) -> Optional[PendingCall]:
        """Take the oldest pending call for ``tool_name``.

        Results are paired with calls first-in first-out per tool name, since
        hook payloads carry no call id. Overlapping calls to the same tool are
        therefore matched in start order.

        Returns:
            The removed pending call, or None if there is none for the tool
        """
        calls = self.load_all()
        prefix = pending_key(tool_name, "")
        matching = sorted(
            (key for key in calls if key.startswith(prefix)),
            key=lambda key: calls[key].timestamp,
        )
        if not matching:
            return None
        call = calls.pop(matching[0])
        self._save(calls)
        return call

    def _save(self, calls: Dict[str, PendingCall]) -> None:
        _write_json(self.path, {
            key: {"timestamp": call.timestamp, "toolName": call.tool_name}
            for key, call in calls.items()
        })


def _read_json(path: Path):
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except UnicodeDecodeError:
        logger.debug("Ignoring undecodable state file %s", path)
        return None
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Ignoring corrupt state file %s", path)
        return None


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
