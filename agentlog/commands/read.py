"""Read command: normalized timeline with results attached to their calls."""
from __future__ import annotations

from datetime import datetime

from agentlog.correlate import timeline
from agentlog.session import Session


def cmd_read(session: Session, tool_id: str | None = None, raw: bool = False,
             after: datetime | None = None, before: datetime | None = None) -> dict:
    """Return the session timeline as a canonical dict.

    Each call entry carries its correlated result under ``"result"``; the
    result itself is not repeated as a standalone item. With ``raw`` every
    entry is listed on its own, in pipeline order.
    """
    tool = session.tool_id(tool_id)
    entries = session.entries(tool, after=after, before=before)

    items = []
    if raw:
        items = [e.to_dict() for e in entries]
    else:
        for item in timeline(entries):
            d = item.entry.to_dict()
            if item.result is not None:
                d["result"] = item.result.to_dict()
            items.append(d)

    return {
        "session": session.id,
        "tool": tool,
        "entries": items,
    }
