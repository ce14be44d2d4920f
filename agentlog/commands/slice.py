"""Slice command: time/index windowed extraction."""
from __future__ import annotations

from datetime import datetime

from agentlog.session import Session


def _parse_index_range(value: str) -> tuple[int | None, int | None]:
    """Parse 'start:end' index range. Either side optional."""
    parts = value.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid index range: {value!r} (use start:end)")
    try:
        start = int(parts[0]) if parts[0].strip() else None
        end = int(parts[1]) if parts[1].strip() else None
    except ValueError:
        raise ValueError(f"Invalid index range: {value!r} (use start:end)") from None
    return start, end


def cmd_slice(session: Session,
              tool_id: str | None = None,
              after: datetime | None = None,
              before: datetime | None = None,
              index_range: str | None = None,
              types: list[str] | None = None) -> dict:
    """Extract a windowed subset of normalized entries."""
    tool = session.tool_id(tool_id)
    entries = list(enumerate(session.entries(tool, after=after, before=before)))

    if types:
        entries = [(i, e) for i, e in entries if e.type.value in types]

    if index_range:
        start, end = _parse_index_range(index_range)
        entries = entries[start:end]

    out = []
    for idx, entry in entries:
        d = entry.to_dict()
        d["index"] = idx
        out.append(d)

    return {
        "session": session.id,
        "tool": tool,
        "count": len(out),
        "entries": out,
    }
