"""
Static HTML pages for the timeline, the daily report and the weekly report.

Pages are self-contained (inline CSS, no scripts). Every piece of event
data is escaped before it reaches the markup.
"""

import json
from html import escape
from typing import Dict, List, Sequence

from claw_diary.core.narrative import (
    categorize_session,
    format_cost,
    format_duration,
    format_time,
    format_tokens,
)
from claw_diary.core.summarizer import count_tool_calls, group_by_session, summarize_session
from claw_diary.storage.models import DiaryEvent, EventType, parse_timestamp

ARGS_PREVIEW_LIMIT = 120

STYLE = """
  :root {
    --bg: #0d1117; --surface: #161b22; --border: #30363d;
    --text: #c9d1d9; --text-muted: #8b949e; --accent: #58a6ff;
    --green: #3fb950; --red: #f85149; --amber: #d29922; --purple: #bc8cff;
  }
  * { box-sizing: border-box; margin: 0; padding: 0; }
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
         background: var(--bg); color: var(--text); padding: 32px; max-width: 960px; margin: 0 auto; }
  h1 { font-size: 24px; margin-bottom: 24px; color: var(--accent); }
  h2 { font-size: 16px; color: var(--text-muted); margin: 24px 0 12px; text-transform: uppercase; }
  h3 { font-size: 14px; margin: 16px 0 8px; }
  .nav { margin-bottom: 16px; }
  .nav a { color: var(--accent); text-decoration: none; margin-right: 16px; font-size: 13px; }
  .cards { display: grid; grid-template-columns: repeat(auto-fit, minmax(160px, 1fr)); gap: 12px; margin-bottom: 24px; }
  .card { background: var(--surface); border: 1px solid var(--border); border-radius: 8px; padding: 16px; }
  .card .value { font-size: 28px; font-weight: 700; color: var(--accent); }
  .card .label { font-size: 12px; color: var(--text-muted); margin-top: 4px; }
  table { width: 100%; border-collapse: collapse; margin-bottom: 16px; }
  th, td { padding: 8px 12px; text-align: left; border-bottom: 1px solid var(--border); font-size: 13px; }
  th { color: var(--text-muted); font-weight: 600; background: var(--surface); }
  .bar { height: 16px; border-radius: 3px; background: var(--accent); display: inline-block; min-width: 2px; }
  .heatmap { display: flex; gap: 4px; flex-wrap: wrap; margin-bottom: 24px; }
  .heatmap-cell { width: 32px; height: 32px; border-radius: 4px; display: flex; align-items: center;
                  justify-content: center; font-size: 10px; color: var(--text-muted); }
  .insight { padding: 6px 12px; margin: 4px 0; background: var(--surface);
             border-left: 3px solid var(--accent); border-radius: 4px; font-size: 13px; }
  .session { border: 1px solid var(--border); border-radius: 8px; padding: 12px 16px; margin-bottom: 16px; }
  .session .meta { font-size: 12px; color: var(--text-muted); margin-bottom: 8px; }
  .event { display: flex; gap: 12px; padding: 4px 0 4px 10px; border-left: 3px solid var(--border); font-size: 13px; }
  .event .time { color: var(--text-muted); min-width: 48px; }
  .event .detail { color: var(--text-muted); font-family: monospace; word-break: break-all; }
  .event.call { border-color: var(--accent); }
  .event.ok { border-color: var(--green); }
  .event.failed { border-color: var(--red); }
  .event.lifecycle { border-color: var(--purple); }
  .empty { color: var(--text-muted); font-style: italic; }
"""


def page(title: str, body: str, nav: Sequence[tuple] = ()) -> str:
    """Wrap ``body`` in the shared document shell."""
    links = "".join(f'<a href="{escape(href)}">{escape(label)}</a>' for href, label in nav)
    nav_html = f'<div class="nav">{links}</div>\n' if links else ""
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="UTF-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"<title>{escape(title)} - Claw Diary</title>\n"
        f"<style>{STYLE}</style>\n</head>\n<body>\n"
        f"{nav_html}{body}\n</body></html>\n"
    )


def _card(value: str, label: str) -> str:
    return f'<div class="card"><div class="value">{escape(value)}</div><div class="label">{escape(label)}</div></div>'


def _event_class(event: DiaryEvent) -> str:
    if event.type == EventType.TOOL_CALL:
        return "call"
    if event.type == EventType.TOOL_RESULT:
        return "failed" if event.failed else "ok"
    return "lifecycle"


def _event_detail(event: DiaryEvent) -> str:
    if event.type == EventType.TOOL_CALL and event.tool_args:
        text = json.dumps(event.tool_args, ensure_ascii=False, default=str)
        return text[:ARGS_PREVIEW_LIMIT]
    if event.type == EventType.TOOL_RESULT:
        parts = []
        if event.duration is not None:
            parts.append(format_duration(event.duration))
        if event.token_usage is not None:
            parts.append(f"{format_tokens(event.tokens)} tokens ({format_cost(event.cost)})")
        if event.result is not None and event.result.output_preview:
            parts.append(event.result.output_preview[:ARGS_PREVIEW_LIMIT])
        return " | ".join(parts)
    if event.type == EventType.SESSION_END and event.duration is not None:
        return f"session lasted {format_duration(event.duration)}"
    return event.model or ""


def _render_event(event: DiaryEvent) -> str:
    label = event.tool_name or event.type.value.replace("_", " ")
    return (
        f'<div class="event {_event_class(event)}">'
        f'<span class="time">{escape(format_time(event.timestamp))}</span>'
        f"<strong>{escape(label)}</strong>"
        f'<span class="detail">{escape(_event_detail(event))}</span>'
        "</div>"
    )


def render_timeline_html(events: List[DiaryEvent], title: str) -> str:
    """Render events as a static timeline page, one block per session.

    Args:
        events: Events to show, any order
        title: Page heading

    Returns:
        Complete HTML document
    """
    ordered = sorted(events, key=lambda e: e.timestamp)
    nav = [("/report", "Daily Report"), ("/weekly", "Weekly Report")]

    if not ordered:
        body = f"<h1>{escape(title)}</h1>\n<p class=\"empty\">No activity recorded.</p>"
        return page(title, body, nav)

    by_session = group_by_session(ordered)
    sessions = [summarize_session(sid, evts) for sid, evts in by_session.items()]
    sessions.sort(key=lambda s: s.start_time)

    parts = [
        f"<h1>{escape(title)}</h1>",
        '<div class="cards">',
        _card(str(len(sessions)), "Sessions"),
        _card(str(sum(s.tool_calls for s in sessions)), "Tool Calls"),
        _card(format_tokens(sum(s.tokens for s in sessions)), "Tokens"),
        _card(format_cost(sum(s.cost for s in sessions)), "Cost"),
        "</div>",
    ]
    for index, session in enumerate(sessions, start=1):
        heading = f"Session {index} ({format_time(session.start_time)} - {format_time(session.end_time)})"
        if session.top_tools:
            heading += f": {categorize_session(session.top_tools)}"
        parts.append('<div class="session">')
        parts.append(f"<h3>{escape(heading)}</h3>")
        parts.append(
            f'<div class="meta">{escape(session.description)} '
            f"{escape(format_tokens(session.tokens))} tokens ({escape(format_cost(session.cost))}), "
            f"{escape(format_duration(session.duration))}</div>"
        )
        parts.extend(_render_event(e) for e in by_session[session.session_id])
        parts.append("</div>")
    return page(title, "\n".join(parts), nav)


def hourly_activity(events: List[DiaryEvent]) -> List[int]:
    """Tool calls per local hour of day."""
    hours = [0] * 24
    for e in events:
        if e.type == EventType.TOOL_CALL:
            hours[parse_timestamp(e.timestamp).hour] += 1
    return hours


def render_report_html(date_str: str, events: List[DiaryEvent]) -> str:
    """Render the daily report: headline cards, hourly heatmap, top tools."""
    tool_calls = [e for e in events if e.type == EventType.TOOL_CALL]
    total_tokens = sum(e.tokens for e in events)
    total_cost = sum(e.cost for e in events)

    hours = hourly_activity(events)
    busiest = max(max(hours), 1)
    cells = []
    for hour, count in enumerate(hours):
        background = "var(--surface)" if count == 0 else f"rgba(56,166,255,{0.15 + count / busiest * 0.85:.2f})"
        cells.append(
            f'<div class="heatmap-cell" style="background:{background}" '
            f'title="{hour}:00 - {count} calls">{hour}</div>'
        )

    counts: Dict[str, int] = count_tool_calls(tool_calls)
    ranked = sorted(counts.items(), key=lambda item: -item[1])[:10]
    rows = []
    for name, count in ranked:
        width = max(count / max(len(tool_calls), 1) * 100, 2)
        rows.append(
            f"<tr><td>{escape(name)}</td><td>{count}</td>"
            f'<td><span class="bar" style="width:{width:.0f}%"></span></td></tr>'
        )

    body = "\n".join([
        f"<h1>{escape(date_str)} Daily Report</h1>",
        '<div class="cards">',
        _card(str(len({e.session_id for e in events})), "Sessions"),
        _card(str(len(tool_calls)), "Tool Calls"),
        _card(format_tokens(total_tokens), "Tokens"),
        _card(format_cost(total_cost), "Cost"),
        "</div>",
        "<h2>Hourly Activity</h2>",
        '<div class="heatmap">',
        *cells,
        "</div>",
        "<h2>Top Tools</h2>",
        "<table>",
        "<tr><th>Tool</th><th>Calls</th><th></th></tr>",
        *rows,
        "</table>",
    ])
    return page(f"{date_str} Report", body, [("/", "Timeline"), ("/weekly", "Weekly Report")])


def markdown_to_html(markdown: str) -> str:
    """Convert the report markdown subset (headings, bullets, tables) to HTML.

    Table separator rows are dropped; the first row of a table becomes its
    header. Other lines end any open table and are otherwise ignored.
    """
    out: List[str] = []
    in_table = False
    for line in markdown.split("\n"):
        if line.startswith("|") and "---" in line:
            continue
        if line.startswith("|"):
            cells = [c.strip() for c in line.split("|") if c.strip()]
            if not in_table:
                out.append("<table><thead><tr>" + "".join(f"<th>{escape(c)}</th>" for c in cells) + "</tr></thead><tbody>")
                in_table = True
            else:
                out.append("<tr>" + "".join(f"<td>{escape(c)}</td>" for c in cells) + "</tr>")
            continue

        if in_table:
            out.append("</tbody></table>")
            in_table = False
        if line.startswith("# "):
            out.append(f"<h1>{escape(line[2:])}</h1>")
        elif line.startswith("## "):
            out.append(f"<h2>{escape(line[3:])}</h2>")
        elif line.startswith("- "):
            out.append(f'<div class="insight">{escape(line[2:])}</div>')

    if in_table:
        out.append("</tbody></table>")
    return "\n".join(out)


def render_weekly_html(markdown: str) -> str:
    return page("Weekly Report", markdown_to_html(markdown), [("/", "Timeline"), ("/report", "Daily Report")])
