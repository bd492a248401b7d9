"""
Data models for the storage layer.

Defines the diary event record and its one-line JSON form.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from claw_diary.core.token_counter import TokenUsage

OUTPUT_PREVIEW_LIMIT = 200


class EventType(Enum):
    """Kinds of recorded events."""
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SESSION_START = "session_start"
    SESSION_END = "session_end"


@dataclass(frozen=True)
class EventResult:
    """Outcome of a tool call."""
    success: bool
    output_preview: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "outputPreview": self.output_preview}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventResult":
        if not isinstance(data, dict):
            raise ValueError("result must be an object")
        preview = data.get("outputPreview") or ""
        return cls(success=data.get("success") is not False, output_preview=str(preview))


@dataclass(frozen=True)
class DiaryEvent:
    """Immutable record of one hook occurrence.

    Events are appended to the daily log and never modified afterwards.
    Every event belongs to exactly one session.
    """
    id: str
    timestamp: str  # ISO 8601
    session_id: str
    type: EventType
    tool_name: Optional[str] = None
    tool_args: Optional[Dict[str, Any]] = None
    result: Optional[EventResult] = None
    token_usage: Optional[TokenUsage] = None
    model: Optional[str] = None
    duration: Optional[int] = None  # ms

    @property
    def cost(self) -> float:
        """Estimated cost carried by this event (0 when it has no usage)."""
        return self.token_usage.estimated_cost if self.token_usage else 0.0

    @property
    def tokens(self) -> int:
        return self.token_usage.total_tokens if self.token_usage else 0

    @property
    def failed(self) -> bool:
        """True for tool results explicitly marked unsuccessful."""
        return (
            self.type == EventType.TOOL_RESULT
            and self.result is not None
            and not self.result.success
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored camelCase mapping, omitting absent fields."""
        data: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "sessionId": self.session_id,
            "type": self.type.value,
        }
        if self.tool_name is not None:
            data["toolName"] = self.tool_name
        if self.tool_args is not None:
            data["toolArgs"] = self.tool_args
        if self.result is not None:
            data["result"] = self.result.to_dict()
        if self.token_usage is not None:
            data["tokenUsage"] = self.token_usage.to_dict()
        if self.model is not None:
            data["model"] = self.model
        if self.duration is not None:
            data["duration"] = self.duration
        return data

    def to_line(self) -> str:
        """Serialize to a single log line (without the trailing newline)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiaryEvent":
        """Validate and coerce a parsed log object into an event.

        Unknown keys are ignored. Optional fields that are present but
        malformed make the whole record invalid.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError("event line must be a JSON object")

        for key in ("id", "timestamp", "sessionId", "type"):
            if not isinstance(data.get(key), str) or not data[key]:
                raise ValueError(f"event missing required field '{key}'")

        event_type = EventType(data["type"])
        parse_timestamp(data["timestamp"])

        tool_args = data.get("toolArgs")
        if tool_args is not None and not isinstance(tool_args, dict):
            raise ValueError("toolArgs must be an object")

        result = data.get("result")
        token_usage = data.get("tokenUsage")
        duration = data.get("duration")
        tool_name = data.get("toolName")
        model = data.get("model")

        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            session_id=data["sessionId"],
            type=event_type,
            tool_name=str(tool_name) if tool_name is not None else None,
            tool_args=tool_args,
            result=EventResult.from_dict(result) if result is not None else None,
            token_usage=TokenUsage.from_dict(token_usage) if token_usage is not None else None,
            model=str(model) if model is not None else None,
            duration=int(duration) if duration is not None else None,
        )

    @classmethod
    def from_line(cls, line: str) -> "DiaryEvent":
        """Parse one stored log line.

        Raises:
            ValueError: If the line is not valid JSON or not a valid event
        """
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid event line: {e}") from e
        try:
            return cls.from_dict(data)
        except (TypeError, OverflowError) as e:
            raise ValueError(f"invalid event line: {e}") from e


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 event timestamp into an aware local datetime.

    Accepts a trailing ``Z``. Naive timestamps are taken as local time.
    """
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).astimezone()


def format_timestamp(moment: datetime) -> str:
    """Format an aware datetime the way the collector stores it (UTC, ms, ``Z``)."""
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")
