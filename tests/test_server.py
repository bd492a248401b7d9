"""
Tests for the local viewer.
"""

import json
import threading
import urllib.error
import urllib.request
from datetime import date
from unittest.mock import patch

import pytest

from claw_diary.storage.models import EventType
from claw_diary.viewer.server import create_server, route

TODAY = date(2026, 3, 3)


@pytest.fixture
def populated(repository, make_event, add_events):
    add_events(
        TODAY,
        make_event(TODAY, tool_name="Grep"),
        make_event(TODAY, EventType.TOOL_RESULT, tool_name="Grep", minute=1,
                   success=True, cost=0.2, tokens=(10, 10)),
    )
    add_events(date(2026, 3, 1), make_event(date(2026, 3, 1), tool_name="Read", session_id="older"))
    return repository


class TestRoute:
    """Test request routing without a socket."""

    @pytest.mark.parametrize("path", ["/", "/timeline", "/report", "/weekly"])
    def test_html_pages(self, populated, path):
        """Verify every page renders."""
        response = route(path, {}, populated, TODAY)
        assert response.status == 200
        assert response.content_type.startswith("text/html")
        assert response.body.startswith(b"<!DOCTYPE html>")

    def test_timeline_for_date(self, populated):
        """Verify the date parameter picks the day."""
        body = route("/timeline", {"date": ["2026-03-01"]}, populated, TODAY).body.decode("utf-8")
        assert "2026-03-01 Timeline" in body
        assert "Read" in body

    def test_timeline_for_week(self, populated):
        body = route("/", {"range": ["week"]}, populated, TODAY).body.decode("utf-8")
        assert "This Week&#x27;s Timeline" in body

    def test_invalid_date_falls_back_to_today(self, populated):
        body = route("/", {"date": ["soon"]}, populated, TODAY).body.decode("utf-8")
        assert "2026-03-03 Timeline" in body

    def test_api_events(self, populated):
        """Verify a day's raw events are served as JSON."""
        response = route("/api/events", {"date": ["2026-03-03"]}, populated, TODAY)
        events = json.loads(response.body)
        assert response.content_type.startswith("application/json")
        assert [e["type"] for e in events] == ["tool_call", "tool_result"]

    def test_api_stats(self, populated):
        stats = json.loads(route("/api/stats", {}, populated, TODAY).body)
        assert stats["totalToolCalls"] == 2
        assert stats["dailyCost"] == pytest.approx(0.2)

    def test_api_dates(self, populated):
        assert json.loads(route("/api/dates", {}, populated, TODAY).body) == ["2026-03-01", "2026-03-03"]

    def test_unknown_path(self, populated):
        response = route("/admin", {}, populated, TODAY)
        assert response.status == 404


class TestServer:
    """Test the HTTP handler over a real socket."""

    @pytest.fixture
    def base_url(self, populated):
        server = create_server(populated, port=0)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        host, port = server.server_address[:2]
        yield f"http://{host}:{port}"
        server.shutdown()
        server.server_close()

    def _status(self, request):
        try:
            with urllib.request.urlopen(request, timeout=5) as resp:
                return resp.status, resp.read()
        except urllib.error.HTTPError as e:
            return e.code, e.read()

    def test_get(self, base_url):
        status, body = self._status(f"{base_url}/api/dates")
        assert status == 200
        assert json.loads(body) == ["2026-03-01", "2026-03-03"]

    def test_not_found(self, base_url):
        status, body = self._status(f"{base_url}/nope")
        assert (status, body) == (404, b"Not Found")

    def test_writes_are_rejected(self, base_url):
        """Verify the viewer is read-only."""
        request = urllib.request.Request(f"{base_url}/api/events", data=b"{}", method="POST")
        status, _ = self._status(request)
        assert status == 405

    def test_internal_error(self, base_url):
        """Verify failures inside a route become a 500."""
        with patch("claw_diary.viewer.server.route", side_effect=RuntimeError("boom")):
            status, body = self._status(f"{base_url}/api/stats")
        assert (status, body) == (500, b"Internal Server Error")
