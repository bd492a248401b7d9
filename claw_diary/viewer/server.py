"""
Local read-only HTTP viewer.

Routes (GET only, bound to 127.0.0.1):
  /            timeline for today (?date=YYYY-MM-DD, ?range=week)
  /timeline    same as /
  /report      daily report (?date=YYYY-MM-DD)
  /weekly      weekly report
  /api/events  one day's raw events as JSON (?date=YYYY-MM-DD)
  /api/stats   30-day analytics as JSON
  /api/dates   dates that have a log file

Routing is a plain function over (path, query); the request handler only
moves bytes.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import date
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from claw_diary.core.analytics import generate_stats
from claw_diary.core.summarizer import generate_weekly_summary
from claw_diary.export.exporter import select_timeline
from claw_diary.export.html import render_report_html, render_timeline_html, render_weekly_html
from claw_diary.storage.paths import parse_log_date
from claw_diary.storage.repository import EventRepository

logger = logging.getLogger(__name__)

HOST = "127.0.0.1"
DEFAULT_PORT = 3847

HTML_TYPE = "text/html; charset=utf-8"
JSON_TYPE = "application/json; charset=utf-8"
TEXT_TYPE = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class Response:
    status: int
    content_type: str
    body: bytes


def _html(markup: str) -> Response:
    return Response(200, HTML_TYPE, markup.encode("utf-8"))


def _json(data) -> Response:
    return Response(200, JSON_TYPE, json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8"))


def _date_param(query: Dict[str, List[str]], today: date) -> date:
    """The ``date`` query parameter, or ``today`` when absent or invalid."""
    value = query.get("date", [None])[0]
    if not value:
        return today
    try:
        return parse_log_date(value)
    except ValueError:
        logger.debug("Ignoring invalid date parameter %r", value)
        return today


def route(
    path: str,
    query: Dict[str, List[str]],
    repository: EventRepository,
    today: Optional[date] = None,
) -> Response:
    """Produce the response for one GET request.

    Args:
        path: URL path without the query string
        query: Parsed query string (``parse_qs`` shape)
        repository: Event source
        today: Reference date for "today" (defaults to the current date)

    Returns:
        Response with status 200, or 404 for unknown paths
    """
    today = today or date.today()

    if path in ("/", "/timeline"):
        if query.get("range", [None])[0] == "week":
            events, _ = select_timeline("week", repository, today)
            return _html(render_timeline_html(events, "This Week's Timeline"))
        day = _date_param(query, today)
        events, title = select_timeline(day.isoformat(), repository, today)
        return _html(render_timeline_html(events, f"{title} Timeline"))

    if path == "/report":
        day = _date_param(query, today)
        return _html(render_report_html(day.isoformat(), repository.load(day)))

    if path == "/weekly":
        return _html(render_weekly_html(generate_weekly_summary(today, repository)))

    if path == "/api/events":
        day = _date_param(query, today)
        return _json([e.to_dict() for e in repository.load(day)])

    if path == "/api/stats":
        return _json(generate_stats(today, repository).to_dict())

    if path == "/api/dates":
        return _json([day.isoformat() for day in repository.list_dates()])

    return Response(404, TEXT_TYPE, b"Not Found")


class DiaryRequestHandler(BaseHTTPRequestHandler):
    """Serves :func:`route` results; anything but GET is rejected."""

    repository: EventRepository

    def log_message(self, format, *args):
        pass  # request logging goes through the module logger

    def do_GET(self):
        started = time.perf_counter()
        parsed = urlparse(self.path)
        try:
            response = route(parsed.path, parse_qs(parsed.query), self.repository)
        except Exception:
            logger.exception("Unhandled error serving %s", parsed.path)
            response = Response(500, TEXT_TYPE, b"Internal Server Error")

        self._send(response)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("GET %s -> %d (%.1fms)", self.path, response.status, elapsed_ms)

    def do_POST(self):
        self._send(Response(405, TEXT_TYPE, b"Method Not Allowed"))

    do_PUT = do_POST
    do_PATCH = do_POST
    do_DELETE = do_POST

    def _send(self, response: Response) -> None:
        self.send_response(response.status)
        self.send_header("Content-Type", response.content_type)
        self.send_header("Content-Length", str(len(response.body)))
        self.send_header("Cache-Control", "no-cache")
        self.send_header("X-Content-Type-Options", "nosniff")
        self.end_headers()
        self.wfile.write(response.body)


def create_server(repository: EventRepository, port: int = DEFAULT_PORT, host: str = HOST) -> ThreadingHTTPServer:
    """Bind a threaded viewer server for ``repository`` (port 0 picks a free port)."""
    handler = type("BoundDiaryRequestHandler", (DiaryRequestHandler,), {"repository": repository})
    return ThreadingHTTPServer((host, port), handler)


def serve(repository: EventRepository, port: int = DEFAULT_PORT) -> None:
    """Run the viewer until interrupted."""
    server = create_server(repository, port)
    logger.info("Viewer listening on http://%s:%d", *server.server_address[:2])
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down viewer")
    finally:
        server.server_close()
