"""Gemini CLI adapter (role-tagged JSON lines)."""
from __future__ import annotations

from agentlog.entry import EntryType
from agentlog.primitives import (
    NOT_JSON, ParseResult, create_entry, first_string, load_json, make_id, raw_entry,
    resolve_timestamp,
)

TOOL_ID = "gemini-cli"

_ROLES = {
    "model": (EntryType.ASSISTANT_MESSAGE, "assistant"),
    "assistant": (EntryType.ASSISTANT_MESSAGE, "assistant"),
    "user": (EntryType.USER_MESSAGE, "user"),
}


def parse(line: str, fallback_timestamp: float, id_base: str) -> ParseResult:
    msg = load_json(line)
    if msg is NOT_JSON or not isinstance(msg, dict):
        return raw_entry(line, fallback_timestamp, id_base)

    role = msg.get("role")
    if not isinstance(role, str) or role not in _ROLES:
        return None
    content = first_string(msg.get("text"), msg.get("content"))
    if not content:
        return None
    etype, suffix = _ROLES[role]
    return create_entry(etype, content, resolve_timestamp(msg, fallback_timestamp),
                        make_id(id_base, suffix))
