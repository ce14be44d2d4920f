"""Trace command: compact chronological call -> result timeline."""
from __future__ import annotations

from datetime import datetime

from agentlog.correlate import timeline
from agentlog.entry import EntryType
from agentlog.session import Session, compact_json

_TARGET_KEYS = ("command", "filePath")


def _preview(text: str, n: int = 80) -> str:
    return " ".join(text.split())[:n]


def _call_target(entry) -> str:
    for key in _TARGET_KEYS:
        val = entry.meta(key)
        if val:
            return str(val)
    tool_input = entry.meta("toolInput")
    if tool_input:
        return compact_json(tool_input, max_len=120)
    return _preview(entry.content, 120)


def cmd_trace(
    session: Session,
    calls_only: bool = False,
    tool_id: str | None = None,
    after: datetime | None = None,
    before: datetime | None = None,
) -> dict:
    """Extract a chronological event timeline from a session."""
    tool = session.tool_id(tool_id)
    entries = session.entries(tool, after=after, before=before)

    events: list[dict] = []
    for entry, result in timeline(entries):
        base: dict = {"t": entry.timestamp}

        if entry.is_call:
            ev: dict = {
                **base,
                "type": "call",
                "kind": entry.type.value,
                "name": entry.meta("toolName") or entry.type.value,
                "target": _call_target(entry),
            }
            if result is not None:
                ev["status"] = result.meta("status") or "done"
                ev["result"] = _preview(result.content)
                ev["elapsed_ms"] = max(0, result.timestamp - entry.timestamp)
            else:
                ev["status"] = entry.meta("status") or "pending"
            events.append(ev)
            continue

        if calls_only:
            continue

        if entry.type == EntryType.TOOL_RESULT:
            ev = {**base, "type": "orphan_result", "preview": _preview(entry.content)}
            if entry.meta("status"):
                ev["status"] = entry.meta("status")
            events.append(ev)
        else:
            events.append({**base, "type": entry.type.value, "preview": _preview(entry.content)})

    return {
        "session": session.id,
        "tool": tool,
        "events": events,
    }
