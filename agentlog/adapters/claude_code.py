"""Claude Code ``--output-format stream-json`` adapter."""
from __future__ import annotations

import logging

from agentlog.entry import EntryType, NormalizedEntry, ToolStatus
from agentlog.primitives import (
    NOT_JSON, ParseResult, as_record, create_entry, extract_exit_code, first_string,
    get_bool, get_number, get_string, load_json, make_id, pretty_dumps, raw_entry,
    resolve_timestamp, stringify_content,
)

logger = logging.getLogger(__name__)

TOOL_ID = "claude-code"

_NO_CONTENT = "(no content)"
_FILE_TOOLS = ("Read", "Edit", "Write")


def _tool_entry_type(tool_name: str) -> EntryType:
    if tool_name in ("Bash", "execute"):
        return EntryType.COMMAND_RUN
    if tool_name in ("Edit", "Write"):
        return EntryType.FILE_EDIT
    if tool_name == "Read":
        return EntryType.FILE_READ
    return EntryType.TOOL_USE


def _tool_use(tool_name: str, tool_input: dict | None, tool_use_id: str | None,
              timestamp: float, id: str) -> NormalizedEntry:
    metadata: dict = {
        "toolName": tool_name,
        "toolInput": tool_input,
        "toolUseId": tool_use_id,
        "status": ToolStatus.PENDING.value,
    }
    if not tool_input:
        content = tool_name
    elif tool_name == "Bash" and tool_input.get("command"):
        command = str(tool_input["command"])
        content = f"$ {command}"
        metadata["command"] = command
    elif tool_name in _FILE_TOOLS and tool_input.get("file_path"):
        content = str(tool_input["file_path"])
        metadata["filePath"] = content
    else:
        content = pretty_dumps(tool_input)
    return create_entry(_tool_entry_type(tool_name), content, timestamp, id, metadata)


def _assistant(msg: dict, timestamp: float, id_base: str) -> ParseResult:
    entries: list[NormalizedEntry] = []
    message = as_record(msg.get("message")) or {}
    content = message.get("content")

    if isinstance(content, list):
        for i, block in enumerate(content):
            if not isinstance(block, dict):
                continue
            btype = get_string(block.get("type"))
            if btype == "text":
                text = get_string(block.get("text"))
                if text and text != _NO_CONTENT:
                    entries.append(create_entry(
                        EntryType.ASSISTANT_MESSAGE, text, timestamp,
                        make_id(id_base, f"text-{i}"),
                    ))
            elif btype == "tool_use":
                name = get_string(block.get("name"))
                if name:
                    entries.append(_tool_use(
                        name, as_record(block.get("input")), get_string(block.get("id")),
                        timestamp, make_id(id_base, f"tool-{i}"),
                    ))
    else:
        text = first_string(content, msg.get("content"))
        if text and text != _NO_CONTENT:
            entries.append(create_entry(
                EntryType.ASSISTANT_MESSAGE, text, timestamp, make_id(id_base, "text"),
            ))

    if not entries:
        return None
    return entries[0] if len(entries) == 1 else entries


def _find_tool_result_block(content) -> dict | None:
    if not isinstance(content, list):
        return None
    for block in content:
        if isinstance(block, dict) and block.get("type") == "tool_result":
            return block
    return None


def _user_text(content) -> str | None:
    if isinstance(content, str):
        return get_string(content)
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                text = get_string(block.get("text"))
                if text:
                    parts.append(text)
        return get_string("\n".join(parts))
    return None


def _user(msg: dict, timestamp: float, id_base: str) -> NormalizedEntry | None:
    message = as_record(msg.get("message")) or {}
    content = message.get("content")
    block = _find_tool_result_block(content)

    tool_use_result = as_record(msg.get("tool_use_result"))
    if tool_use_result:
        stdout = get_string(tool_use_result.get("stdout")) or ""
        stderr = get_string(tool_use_result.get("stderr")) or ""
        output = f"{stdout}\n{stderr}" if stderr else stdout
        output = output.strip()
        if output:
            metadata = {}
            if block:
                metadata["toolUseId"] = get_string(block.get("tool_use_id"))
                metadata["status"] = (ToolStatus.FAILED if get_bool(block.get("is_error"))
                                      else ToolStatus.SUCCESS).value
            return create_entry(EntryType.TOOL_RESULT, output, timestamp,
                                make_id(id_base, "tool-result"), metadata)

    if block:
        text = get_string(stringify_content(block.get("content")))
        if text:
            return create_entry(EntryType.TOOL_RESULT, text, timestamp, make_id(id_base, "tool-result"), {
                "toolUseId": get_string(block.get("tool_use_id")),
                "status": (ToolStatus.FAILED if get_bool(block.get("is_error"))
                           else ToolStatus.SUCCESS).value,
            })
        return None

    text = _user_text(content)
    if text:
        return create_entry(EntryType.USER_MESSAGE, text, timestamp, make_id(id_base, "user"))
    return None


def _system(msg: dict, timestamp: float, id_base: str) -> NormalizedEntry | None:
    subtype = get_string(msg.get("subtype"))
    if subtype == "init":
        model = get_string(msg.get("model")) or "unknown"
        content = f"System initialized with model: {model}"
    elif get_string(msg.get("content")):
        content = msg["content"]
    elif subtype:
        content = f"System: {subtype}"
    else:
        return None
    return create_entry(EntryType.SYSTEM_MESSAGE, content, timestamp, make_id(id_base, "system"))


def _result(msg: dict, timestamp: float, id_base: str) -> NormalizedEntry:
    duration_ms = get_number(msg.get("duration_ms"))
    cost = get_number(msg.get("total_cost_usd"))
    success = get_string(msg.get("subtype")) == "success"

    parts = ["✓" if success else "✗", "Completed"]
    if duration_ms:
        parts.append(f"in {duration_ms / 1000:.1f}s")
    if cost:
        parts.append(f"(${cost:.4f})")
    return create_entry(EntryType.SYSTEM_MESSAGE, " ".join(parts), timestamp, make_id(id_base, "result"), {
        "success": success,
        "durationMs": duration_ms,
        "costUsd": cost,
    })


def _flat_tool_result(msg: dict, timestamp: float, id_base: str) -> NormalizedEntry | None:
    output = get_string(msg.get("output"))
    if not output:
        return None
    return create_entry(EntryType.TOOL_RESULT, output, timestamp, make_id(id_base, "tool-result"), {
        "toolUseId": get_string(msg.get("tool_use_id")),
        "toolOutput": output,
        "exitCode": extract_exit_code(output),
        "status": (ToolStatus.FAILED if get_bool(msg.get("is_error")) else ToolStatus.SUCCESS).value,
    })


def parse(line: str, fallback_timestamp: float, id_base: str) -> ParseResult:
    """Normalize one Claude Code stdout line."""
    msg = load_json(line)
    if msg is NOT_JSON or not isinstance(msg, dict):
        logger.debug("claude-code: non-JSON line %s", id_base)
        return raw_entry(line, fallback_timestamp, id_base)

    timestamp = resolve_timestamp(msg, fallback_timestamp)
    mtype = get_string(msg.get("type"))

    if mtype == "assistant":
        return _assistant(msg, timestamp, id_base)
    if mtype == "user":
        return _user(msg, timestamp, id_base)
    if mtype == "system":
        return _system(msg, timestamp, id_base)
    if mtype == "result":
        return _result(msg, timestamp, id_base)
    if mtype == "tool_use":
        return _tool_use(
            get_string(msg.get("name")) or "unknown", as_record(msg.get("input")),
            get_string(msg.get("tool_use_id")), timestamp, make_id(id_base, "tool-use"),
        )
    if mtype == "tool_result":
        return _flat_tool_result(msg, timestamp, id_base)
    if mtype == "control_response":
        return create_entry(EntryType.SYSTEM_MESSAGE, "Session initialized", timestamp,
                            make_id(id_base, "control"))
    return None
