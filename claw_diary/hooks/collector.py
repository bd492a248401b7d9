"""
Hook collector: turns one agent hook invocation into diary events.

Usage: python -m claw_diary.hooks.collector <before|after|session-start|session-stop>

The hook payload arrives as a JSON object on stdin. Every invocation is its
own process; the session pointer and pending calls in the data directory
connect consecutive invocations.
"""

import json
import logging
import sys
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TextIO, Tuple

from claw_diary.config.loader import DiaryConfig, RecordingLevel, load_config
from claw_diary.core.pricing import DEFAULT_MODEL, estimate_cost
from claw_diary.core.sanitizer import sanitize
from claw_diary.core.token_counter import TokenUsage, coerce_token_count
from claw_diary.storage.models import (
    OUTPUT_PREVIEW_LIMIT,
    DiaryEvent,
    EventResult,
    EventType,
    format_timestamp,
    parse_timestamp,
)
from claw_diary.storage.repository import EventRepository
from claw_diary.storage.state import PendingCall, PendingCallStore, SessionStore, pending_key

logger = logging.getLogger(__name__)

HOOK_COMMANDS = ("before", "after", "session-start", "session-stop")
USAGE = "Usage: claw-diary collect <before|after|session-start|session-stop>"
STDIN_TIMEOUT_SECONDS = 1.0
STDIN_CHUNK_SIZE = 65536
UNKNOWN_TOOL = "unknown"

# Exit codes
EXIT_CODE_OK = 0
EXIT_CODE_USAGE = 1


@dataclass(frozen=True)
class HookPayload:
    """Hook stdin payload coerced into known fields."""
    tool_name: str = UNKNOWN_TOOL
    tool_args: Optional[Dict[str, Any]] = None
    model: Optional[str] = None
    result: Any = None
    token_counts: Optional[Tuple[int, int]] = None  # (input, output)

    @classmethod
    def from_raw(cls, raw: Any) -> "HookPayload":
        """Coerce an untrusted parsed payload, defaulting anything malformed."""
        if not isinstance(raw, dict):
            return cls()

        tool_name = raw.get("toolName")
        tool_args = raw.get("toolArgs")
        model = raw.get("model")
        usage = raw.get("tokenUsage")

        token_counts = None
        if isinstance(usage, dict):
            token_counts = (
                coerce_token_count(usage.get("input")),
                coerce_token_count(usage.get("output")),
            )

        return cls(
            tool_name=tool_name if isinstance(tool_name, str) and tool_name else UNKNOWN_TOOL,
            tool_args=tool_args if isinstance(tool_args, dict) and tool_args else None,
            model=model if isinstance(model, str) and model else None,
            result=raw.get("result"),
            token_counts=token_counts,
        )


def read_stdin(stream: Optional[TextIO] = None, timeout: float = STDIN_TIMEOUT_SECONDS) -> str:
    """Read all of stdin, giving up after ``timeout`` seconds.

    A hung or absent hook source must never block the agent, so the read
    happens chunk by chunk on a daemon thread and whatever arrived by the
    deadline is used, even if the writer never closes the pipe.
    An interactive terminal yields ``"{}"`` immediately.
    """
    stream = stream if stream is not None else sys.stdin
    if stream is None:
        return "{}"
    try:
        if stream.isatty():
            return "{}"
    except ValueError:
        return "{}"

    chunks: List[Any] = []
    buffer = getattr(stream, "buffer", None)
    read_chunk = buffer.read1 if hasattr(buffer, "read1") else stream.readline

    def _reader() -> None:
        try:
            while True:
                chunk = read_chunk(STDIN_CHUNK_SIZE)
                if not chunk:
                    return
                chunks.append(chunk)
        except (OSError, ValueError):
            logger.debug("stdin became unreadable", exc_info=True)

    reader = threading.Thread(target=_reader, daemon=True)
    reader.start()
    reader.join(timeout)
    if reader.is_alive():
        logger.debug("stdin read timed out after %.1fs", timeout)

    received = list(chunks)
    if received and isinstance(received[0], bytes):
        return b"".join(received).decode("utf-8", errors="replace") or "{}"
    return "".join(received) or "{}"


def parse_payload(raw: str) -> HookPayload:
    """Parse stdin text; malformed JSON is treated as an empty payload."""
    text = raw.strip()
    if not text:
        return HookPayload()
    try:
        return HookPayload.from_raw(json.loads(text))
    except json.JSONDecodeError:
        logger.debug("Ignoring malformed hook payload")
        return HookPayload()


class Collector:
    """Records hook invocations against one data directory."""

    def __init__(
        self,
        config: DiaryConfig,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.config = config
        self.clock = clock
        self.repository = EventRepository(config.data_dir)
        self.sessions = SessionStore(config.data_dir)
        self.pending = PendingCallStore(config.data_dir)

    def handle(self, command: str, payload: HookPayload) -> List[DiaryEvent]:
        """Run one hook command.

        Returns:
            The events written, in write order (possibly none)

        Raises:
            ValueError: If ``command`` is not a known hook command
        """
        handlers = {
            "session-start": self.session_start,
            "session-stop": self.session_stop,
            "before": self.before,
            "after": self.after,
        }
        if command not in handlers:
            raise ValueError(f"Unknown command: {command}")
        return handlers[command](payload)

    def session_start(self, payload: HookPayload) -> List[DiaryEvent]:
        return [self._start_session(payload.model)]

    def session_stop(self, payload: HookPayload) -> List[DiaryEvent]:
        session = self.sessions.get()
        if session is None:
            return []

        now = self.clock()
        event = self._write(DiaryEvent(
            id=_new_id(),
            timestamp=format_timestamp(now),
            session_id=session.session_id,
            type=EventType.SESSION_END,
            duration=_elapsed_ms(session.start_time, now),
            token_usage=self._token_usage(payload),
            model=payload.model,
        ))
        self.sessions.clear()
        return [event]

    def before(self, payload: HookPayload) -> List[DiaryEvent]:
        if self.config.recording_level == RecordingLevel.MINIMAL:
            return []

        written = []
        session = self.sessions.get()
        if session is None:
            # Tool calls can arrive without a session-start hook.
            written.append(self._start_session(None))
            session = self.sessions.get()

        now = self.clock()
        timestamp = format_timestamp(now)
        tool_args = None
        if self.config.recording_level == RecordingLevel.FULL and payload.tool_args:
            tool_args = sanitize(payload.tool_args)

        call_id = _new_id()
        self.pending.add(
            pending_key(payload.tool_name, call_id),
            PendingCall(timestamp=timestamp, tool_name=payload.tool_name),
        )
        written.append(self._write(DiaryEvent(
            id=call_id,
            timestamp=timestamp,
            session_id=session.session_id,
            type=EventType.TOOL_CALL,
            tool_name=payload.tool_name,
            tool_args=tool_args,
            model=payload.model,
        )))
        return written

    def after(self, payload: HookPayload) -> List[DiaryEvent]:
        if self.config.recording_level == RecordingLevel.MINIMAL:
            return []
        session = self.sessions.get()
        if session is None:
            return []

        now = self.clock()
        pending = self.pending.pop_earliest(payload.tool_name)
        duration = _elapsed_ms(pending.timestamp, now) if pending else None

        output_preview = ""
        if payload.result is not None and self.config.recording_level == RecordingLevel.FULL:
            output_raw = json.dumps(
                sanitize(payload.result), ensure_ascii=False, separators=(",", ":"), default=str
            )
            output_preview = output_raw[:OUTPUT_PREVIEW_LIMIT]

        return [self._write(DiaryEvent(
            id=_new_id(),
            timestamp=format_timestamp(now),
            session_id=session.session_id,
            type=EventType.TOOL_RESULT,
            tool_name=payload.tool_name,
            result=EventResult(success=_result_succeeded(payload.result), output_preview=output_preview),
            duration=duration,
            token_usage=self._token_usage(payload),
            model=payload.model,
        ))]

    def _start_session(self, model: Optional[str]) -> DiaryEvent:
        session_id = _new_id()
        timestamp = format_timestamp(self.clock())
        self.sessions.set(session_id, timestamp)
        return self._write(DiaryEvent(
            id=_new_id(),
            timestamp=timestamp,
            session_id=session_id,
            type=EventType.SESSION_START,
            model=model,
        ))

    def _token_usage(self, payload: HookPayload) -> Optional[TokenUsage]:
        if payload.token_counts is None:
            return None
        input_tokens, output_tokens = payload.token_counts
        cost = estimate_cost(
            payload.model or DEFAULT_MODEL,
            input_tokens,
            output_tokens,
            table=self.config.pricing_table,
        )
        return TokenUsage(input=input_tokens, output=output_tokens, estimated_cost=cost)

    def _write(self, event: DiaryEvent) -> DiaryEvent:
        self.repository.append(event)
        logger.debug("Recorded %s event for session %s", event.type.value, event.session_id)
        return event


def _new_id() -> str:
    return str(uuid.uuid4())


def _elapsed_ms(since: str, now: datetime) -> int:
    """Milliseconds from the ISO timestamp ``since`` to ``now``, never negative."""
    try:
        started = parse_timestamp(since)
    except ValueError:
        return 0
    return max(0, int((now - started).total_seconds() * 1000))


def _result_succeeded(result: Any) -> bool:
    if result is None:
        return True
    if not isinstance(result, dict):
        return True
    return result.get("success") is not False and not result.get("error")


def main(argv: Optional[List[str]] = None, stdin: Optional[TextIO] = None) -> int:
    """Hook entry point.

    Returns:
        Process exit code (usage errors are the only non-zero result)
    """
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE, file=sys.stderr)
        return EXIT_CODE_USAGE

    command = args[0]
    if command not in HOOK_COMMANDS:
        print(f"Unknown command: {command}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return EXIT_CODE_USAGE

    payload = parse_payload(read_stdin(stdin))
    Collector(load_config()).handle(command, payload)
    return EXIT_CODE_OK


if __name__ == "__main__":
    sys.exit(main())
