"""
Tests for the CLI interface.
"""
import json
from datetime import date

import pytest
from typer.testing import CliRunner

from claw_diary.cli.main import EXIT_CODE_ERROR, EXIT_CODE_OK, app
from claw_diary.storage.models import EventType

runner = CliRunner()


@pytest.fixture
def today_events(repository, make_event, add_events):
    """Log a small session for today."""
    today = date.today()
    add_events(
        today,
        make_event(today, EventType.SESSION_START),
        make_event(today, tool_name="Grep", minute=1, tool_args={"pattern": "TODO"}),
        make_event(today, EventType.TOOL_RESULT, tool_name="Grep", minute=2,
                   success=True, cost=0.25, tokens=(100, 20)),
        make_event(today, EventType.SESSION_END, minute=3, duration=180_000),
    )
    return repository


class TestCLI:
    """Test CLI commands."""

    def test_no_command(self, data_dir):
        """Test the banner without a subcommand."""
        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_CODE_OK
        assert "Claw Diary - Use --help" in result.output

    def test_summarize_empty_day(self, data_dir):
        """Test today's summary with no data."""
        result = runner.invoke(app, ["summarize"])
        assert result.exit_code == EXIT_CODE_OK
        assert "No activity recorded today" in result.output

    def test_summarize_today(self, today_events):
        result = runner.invoke(app, ["summarize", "today"])
        assert result.exit_code == EXIT_CODE_OK
        assert f"# {date.today().isoformat()} Agent Diary" in result.output
        assert "### Session 1" in result.output

    def test_summarize_json(self, today_events):
        """Test the machine-readable summary."""
        result = runner.invoke(app, ["summarize", "json"])
        assert result.exit_code == EXIT_CODE_OK
        data = json.loads(result.output)
        assert data["date"] == date.today().isoformat()
        assert data["totalSessions"] == 1
        assert data["totalCost"] == pytest.approx(0.25)

    def test_summarize_week(self, today_events):
        result = runner.invoke(app, ["summarize", "week"])
        assert result.exit_code == EXIT_CODE_OK
        assert "# Weekly Report:" in result.output

    def test_summarize_invalid_date(self, data_dir):
        """Test that a malformed date is an error."""
        result = runner.invoke(app, ["summarize", "date", "03/02/2026"])
        assert result.exit_code == EXIT_CODE_ERROR
        assert "Invalid date" in result.output

    def test_summarize_unknown_mode(self, data_dir):
        result = runner.invoke(app, ["summarize", "yesterday"])
        assert result.exit_code == EXIT_CODE_ERROR

    def test_stats_json(self, today_events):
        """Test the raw analytics output."""
        result = runner.invoke(app, ["stats", "--json"])
        assert result.exit_code == EXIT_CODE_OK
        data = json.loads(result.output)
        assert data["totalToolCalls"] == 1
        assert data["totalSessions"] == 1

    def test_stats_tables(self, today_events):
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == EXIT_CODE_OK
        assert "Cost Summary" in result.output
        assert "$0.25" in result.output

    def test_search(self, today_events):
        """Test search finds matching events."""
        result = runner.invoke(app, ["search", "todo"])
        assert result.exit_code == EXIT_CODE_OK
        assert "(1 matches)" in result.output
        assert "Grep" in result.output

    def test_search_no_results(self, today_events):
        result = runner.invoke(app, ["search", "nothing", "here"])
        assert result.exit_code == EXIT_CODE_OK
        assert 'No events matching "nothing here".' in result.output

    def test_export_json(self, today_events):
        """Test an export lands in the exports directory."""
        result = runner.invoke(app, ["export", "json"])
        assert result.exit_code == EXIT_CODE_OK
        assert "Exported 4 events" in result.output
        exports = list((today_events.data_dir / "exports").glob("diary-export-*.json"))
        assert len(exports) == 1
        assert len(json.loads(exports[0].read_text(encoding="utf-8"))) == 4

    def test_export_without_data(self, data_dir):
        result = runner.invoke(app, ["export"])
        assert result.exit_code == EXIT_CODE_OK
        assert "No data to export." in result.output

    def test_export_unknown_format(self, today_events):
        """Test that an unsupported format is an error."""
        result = runner.invoke(app, ["export", "pdf"])
        assert result.exit_code == EXIT_CODE_ERROR
        assert "Unsupported export format" in result.output

    def test_clear_requires_yes(self, today_events):
        """Test that clear without --yes keeps the data."""
        result = runner.invoke(app, ["clear"])
        assert result.exit_code == EXIT_CODE_OK
        assert "--yes" in result.output
        assert today_events.list_dates() == [date.today()]

    def test_clear_with_yes(self, today_events):
        result = runner.invoke(app, ["clear", "--yes"])
        assert result.exit_code == EXIT_CODE_OK
        assert "All claw-diary data has been deleted." in result.output
        assert not today_events.data_dir.exists()

    def test_timeline(self, today_events):
        """Test the static timeline is written."""
        result = runner.invoke(app, ["timeline"])
        assert result.exit_code == EXIT_CODE_OK
        assert (today_events.data_dir / "output" / "timeline.html").exists()

    def test_timeline_invalid_selector(self, today_events):
        result = runner.invoke(app, ["timeline", "someday"])
        assert result.exit_code == EXIT_CODE_ERROR

    def test_collect(self, data_dir):
        """Test a hook invocation is recorded."""
        payload = json.dumps({"toolName": "Read", "toolArgs": {"file_path": "a.py"}})
        result = runner.invoke(app, ["collect", "before"], input=payload)
        assert result.exit_code == EXIT_CODE_OK
        assert list((data_dir / "events").glob("*.jsonl"))

    @pytest.mark.parametrize("args", [["collect"], ["collect", "launch"]])
    def test_collect_usage_errors(self, data_dir, args):
        """Test missing or unknown hooks exit non-zero."""
        result = runner.invoke(app, args)
        assert result.exit_code == EXIT_CODE_ERROR
        assert not data_dir.exists()
