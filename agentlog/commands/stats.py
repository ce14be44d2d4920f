"""Session statistics extraction command."""
from __future__ import annotations

from datetime import datetime

from agentlog.correlate import unmatched_calls
from agentlog.entry import EntryType, ToolStatus
from agentlog.primitives import get_number
from agentlog.session import Session


def _tool_name(entry) -> str:
    name = entry.meta("toolName")
    if isinstance(name, str) and name:
        return name
    return entry.type.value


def cmd_stats(session: Session, aspect: str | None = None, tool_id: str | None = None,
              after: datetime | None = None, before: datetime | None = None) -> dict:
    """Extract statistics from a session's normalized entries."""
    tool = session.tool_id(tool_id)
    entries = session.entries(tool, after=after, before=before)

    by_type: dict[str, int] = {t.value: 0 for t in EntryType}
    tool_by_name: dict[str, int] = {}
    total_tool_calls = 0
    failed = 0
    cost_usd = 0.0
    exit_code = None

    first_ts = None
    last_ts = None

    for entry in entries:
        by_type[entry.type.value] += 1

        ts = entry.timestamp
        if first_ts is None or ts < first_ts:
            first_ts = ts
        if last_ts is None or ts > last_ts:
            last_ts = ts

        if entry.is_call:
            name = _tool_name(entry)
            tool_by_name[name] = tool_by_name.get(name, 0) + 1
            total_tool_calls += 1
        elif entry.type == EntryType.TOOL_RESULT:
            if entry.meta("status") == ToolStatus.FAILED.value:
                failed += 1

        cost = get_number(entry.meta("costUsd"))
        if cost is not None:
            cost_usd += cost
        code = entry.meta("exitCode")
        if isinstance(code, int) and not isinstance(code, bool):
            exit_code = code

    if first_ts is not None and last_ts is not None:
        duration_secs = int((last_ts - first_ts) / 1000)
    else:
        duration_secs = 0

    results = by_type[EntryType.TOOL_RESULT.value]
    error_rate = failed / results if results > 0 else 0.0

    result: dict = {
        "session": session.id,
        "tool": tool,
        "entries": {
            "total": len(entries),
            "by_type": by_type,
        },
        "tools": {
            "total_calls": total_tool_calls,
            "by_name": tool_by_name,
            "results": results,
            "failed": failed,
            "error_rate": error_rate,
            "unmatched": len(unmatched_calls(entries)),
        },
        "timing": {
            "first_ms": first_ts,
            "last_ms": last_ts,
            "duration_secs": duration_secs,
            "exit_code": exit_code,
        },
        "cost_usd": round(cost_usd, 6),
    }

    if aspect is None:
        return result

    aspect_map = {
        "entries": {
            "session": session.id,
            "entries": result["entries"],
        },
        "tools": {
            "session": session.id,
            "tools": result["tools"],
        },
        "timing": {
            "session": session.id,
            "timing": result["timing"],
        },
    }
    return aspect_map.get(aspect, result)
