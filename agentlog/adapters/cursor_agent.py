"""Cursor Agent ``--output-format stream-json`` adapter."""
from __future__ import annotations

import logging

from agentlog.entry import EntryType, NormalizedEntry, ToolStatus
from agentlog.primitives import (
    NOT_JSON, ParseResult, as_record, create_entry, first_string, get_bool, get_string,
    join_message_parts, load_json, raw_entry, resolve_timestamp, resolve_tool_entry_type,
    stringify, to_snake_case,
)

logger = logging.getLogger(__name__)

TOOL_ID = "cursor-agent"


def extract_message_text(msg: dict) -> str | None:
    message = as_record(msg.get("message"))
    if message:
        content = message.get("content")
        if isinstance(content, list):
            return join_message_parts(content)
        text = first_string(content, message.get("text"))
        if text:
            return text
    return first_string(msg.get("content"), msg.get("text"))


def _format_tool_input(tool_name: str, tool_input: dict | None,
                       entry_type: EntryType) -> tuple[str, dict]:
    """Display text for a call plus the metadata it implies."""
    if not tool_input:
        return tool_name, {}
    if entry_type == EntryType.FILE_READ:
        path = first_string(tool_input.get("path"), tool_input.get("filePath"))
        if path:
            return path, {"filePath": path}
    if entry_type == EntryType.FILE_EDIT:
        path = first_string(tool_input.get("filePath"), tool_input.get("path"))
        if path:
            return path, {"filePath": path}
    if entry_type == EntryType.COMMAND_RUN:
        command = get_string(tool_input.get("command"))
        if command:
            return f"$ {command}", {"command": command}
    return stringify(tool_input), {}


def _tool_call(msg: dict, timestamp: float, id_base: str) -> NormalizedEntry:
    subtype = (get_string(msg.get("subtype")) or "").lower()
    tool_call = as_record(msg.get("tool_call")) or as_record(msg.get("toolCall"))
    tool_name = "tool"
    tool_input: dict | None = None
    tool_output: str | None = None
    tool_use_id = get_string(msg.get("call_id"))
    is_error = get_bool(msg.get("is_error"))

    if tool_call:
        # a single key naming the tool, e.g. {"readToolCall": {"args": ..., "result": ...}}
        key, value = next(iter(tool_call.items()))
        tool_name = to_snake_case(key) or key
        data = as_record(value)
        if data:
            tool_input = as_record(data.get("args")) or as_record(data.get("input"))
            if not tool_use_id and tool_input:
                tool_use_id = get_string(tool_input.get("toolCallId"))
            result = data.get("result", data.get("output"))
            if result is not None:
                tool_output = stringify(result)
                result_record = as_record(result)
                if not is_error and result_record and result_record.get("error"):
                    is_error = True

    if subtype == "completed":
        status = ToolStatus.FAILED if is_error else ToolStatus.SUCCESS
        content = tool_output or f"{tool_name or 'tool'} {'failed' if is_error else 'completed'}"
        return create_entry(EntryType.TOOL_RESULT, content, timestamp, f"{id_base}-tool-result", {
            "toolUseId": tool_use_id,
            "toolName": tool_name,
            "toolOutput": tool_output,
            "status": status.value,
        })

    entry_type = resolve_tool_entry_type(tool_name)
    content, extra = _format_tool_input(tool_name, tool_input, entry_type)
    metadata = {
        "toolName": tool_name,
        "toolInput": tool_input,
        "toolUseId": tool_use_id,
        "status": (ToolStatus.RUNNING if subtype == "started" else ToolStatus.PENDING).value,
    }
    metadata.update(extra)
    return create_entry(entry_type, content, timestamp, f"{id_base}-tool-use", metadata)


def parse(line: str, fallback_timestamp: float, id_base: str) -> ParseResult:
    """Normalize one Cursor Agent stdout line."""
    msg = load_json(line)
    if msg is NOT_JSON or not isinstance(msg, dict):
        logger.debug("cursor-agent: non-object line %s", id_base)
        return raw_entry(line, fallback_timestamp, id_base)

    timestamp = resolve_timestamp(msg, fallback_timestamp)
    mtype = (get_string(msg.get("type")) or "").lower()

    if mtype == "assistant":
        text = extract_message_text(msg)
        if not text:
            return None
        return create_entry(EntryType.ASSISTANT_MESSAGE, text, timestamp, f"{id_base}-assistant")

    if mtype == "user":
        text = extract_message_text(msg)
        if not text:
            return None
        return create_entry(EntryType.USER_MESSAGE, text, timestamp, f"{id_base}-user")

    if mtype == "system":
        subtype = get_string(msg.get("subtype"))
        if subtype == "init":
            model = get_string(msg.get("model")) or "unknown"
            return create_entry(EntryType.SYSTEM_MESSAGE, f"System initialized with model: {model}",
                                timestamp, f"{id_base}-system")
        content = get_string(msg.get("content")) or (f"System: {subtype}" if subtype else None)
        if not content:
            return None
        return create_entry(EntryType.SYSTEM_MESSAGE, content, timestamp, f"{id_base}-system")

    if mtype == "tool_call":
        return _tool_call(msg, timestamp, id_base)

    if mtype == "result":
        text = get_string(msg.get("result"))
        if text:
            return create_entry(EntryType.ASSISTANT_MESSAGE, text, timestamp, f"{id_base}-result",
                                {"isResult": True})
        return create_entry(EntryType.SYSTEM_MESSAGE, "Completed", timestamp, f"{id_base}-result",
                            {"isResult": True})

    if mtype == "error" or get_bool(msg.get("is_error")):
        content = first_string(msg.get("error"), msg.get("message")) or "Error"
        return create_entry(EntryType.ERROR, content, timestamp, f"{id_base}-error")

    fallback = extract_message_text(msg) or get_string(msg.get("message"))
    if fallback:
        return create_entry(EntryType.SYSTEM_MESSAGE, fallback, timestamp, f"{id_base}-system")
    return None


def drop_redundant_results(entries: list[NormalizedEntry]) -> list[NormalizedEntry]:
    """Hide the end-of-turn ``result`` summary once a live transcript exists.

    Must run over every entry parsed so far; a partial view could keep a
    summary that a later assistant message makes redundant.
    """
    has_live_assistant = any(
        e.type == EntryType.ASSISTANT_MESSAGE and not e.is_result for e in entries
    )
    if not has_live_assistant:
        return entries
    return [e for e in entries if not e.is_result]
