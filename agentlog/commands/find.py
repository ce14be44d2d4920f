"""Session listing command."""
from __future__ import annotations

from datetime import datetime

from agentlog.session import Session, count_messages, first_message_preview


def cmd_find(sessions: list[Session], include_empty: bool = False,
             tool_id: str | None = None) -> list[dict]:
    """Return session list as canonical dicts."""
    result = []
    for s in sessions:
        dt = datetime.fromtimestamp(s.mtime)
        msgs = count_messages(s.path)
        if not include_empty and msgs == 0:
            continue
        tool = s.tool_id(tool_id)
        result.append({
            "id": s.id,
            "project": s.project,
            "date": dt.isoformat(),
            "size": s.size,
            "messages": msgs,
            "tool": tool,
            "preview": first_message_preview(s.entries(tool)),
        })
    return result
