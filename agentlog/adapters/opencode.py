"""OpenCode ``run --format json`` adapter."""
from __future__ import annotations

import logging

from agentlog.entry import EntryType, ToolStatus
from agentlog.primitives import (
    NOT_JSON, ParseResult, as_record, create_entry, first_string, get_bool,
    join_message_parts, load_json, raw_entry, resolve_timestamp, resolve_tool_entry_type,
    stringify, to_snake_case,
)

logger = logging.getLogger(__name__)

TOOL_ID = "opencode"


def extract_content(msg: dict | None) -> str | None:
    if not msg:
        return None
    direct = first_string(msg.get("content"), msg.get("text"), msg.get("message"))
    if direct:
        return direct
    message = as_record(msg.get("message"))
    if message:
        content = message.get("content")
        if isinstance(content, list):
            return join_message_parts(content)
        return first_string(content, message.get("text"))
    return None


def _tool_use_id(msg: dict) -> str | None:
    return first_string(msg.get("tool_use_id"), msg.get("call_id"), msg.get("id"))


def parse(line: str, fallback_timestamp: float, id_base: str) -> ParseResult:
    """Normalize one OpenCode stdout line."""
    msg = load_json(line)
    if msg is NOT_JSON or not isinstance(msg, dict):
        logger.debug("opencode: non-object line %s", id_base)
        return raw_entry(line, fallback_timestamp, id_base)

    timestamp = resolve_timestamp(msg, fallback_timestamp)
    raw_type = first_string(msg.get("type"), msg.get("event"))
    mtype = raw_type.lower() if raw_type else ""

    if mtype in ("assistant", "assistant_message"):
        content = extract_content(msg)
        if not content:
            return None
        return create_entry(EntryType.ASSISTANT_MESSAGE, content, timestamp, f"{id_base}-assistant")

    if mtype in ("user", "user_message"):
        content = extract_content(msg)
        if not content:
            return None
        return create_entry(EntryType.USER_MESSAGE, content, timestamp, f"{id_base}-user")

    if mtype in ("tool_use", "tool_call", "tool"):
        tool_name = first_string(msg.get("tool"), msg.get("name"), msg.get("tool_name")) or "tool"
        tool_input = as_record(msg.get("input")) or as_record(msg.get("args"))
        return create_entry(
            resolve_tool_entry_type(tool_name),
            stringify(tool_input) if tool_input else tool_name,
            timestamp, f"{id_base}-tool-use",
            {
                "toolName": to_snake_case(tool_name),
                "toolInput": tool_input,
                "toolUseId": _tool_use_id(msg),
                "status": ToolStatus.RUNNING.value,
            },
        )

    if mtype in ("tool_result", "tool_output"):
        output = extract_content(msg) or stringify(msg.get("result"))
        if not output:
            return None
        return create_entry(EntryType.TOOL_RESULT, output, timestamp, f"{id_base}-tool-result", {
            "toolUseId": _tool_use_id(msg),
            "status": (ToolStatus.FAILED if get_bool(msg.get("is_error")) else ToolStatus.SUCCESS).value,
        })

    if mtype == "error":
        content = extract_content(msg) or raw_type
        return create_entry(EntryType.ERROR, content, timestamp, f"{id_base}-error")

    if mtype == "sdk_event":
        event = as_record(msg.get("event"))
        if event:
            event_type = first_string(event.get("type"), event.get("name"))
            content = extract_content(event) or event_type or "Event"
            if event_type and "error" in event_type.lower():
                return create_entry(EntryType.ERROR, content, timestamp, f"{id_base}-error")
            return create_entry(EntryType.SYSTEM_MESSAGE, content, timestamp, f"{id_base}-system")

    content = extract_content(msg)
    if not content:
        return None
    return create_entry(EntryType.SYSTEM_MESSAGE, content, timestamp, f"{id_base}-system")
