"""Codex CLI adapter.

Codex is event-sourced: a command shows up as a ``begin`` event and, later,
an ``end`` event sharing a ``call_id``. Each half becomes its own entry and
the correlator pairs them afterwards.

Payload nesting differs between protocol versions, so every lookup below
walks an ordered list of locations rather than branching inline:

* ``exec --json`` (legacy event stream): fields sit on the event itself.
* app-server notifications (JSON-RPC): the payload lives under ``params``,
  sometimes wrapped once more as ``params.event``.
* app-server responses: the payload lives under ``result``.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from agentlog.entry import EntryType, NormalizedEntry, ToolStatus
from agentlog.primitives import (
    NOT_JSON, ParseResult, as_record, compact_dumps, create_entry, first_present,
    first_string, format_command, format_type_label, get_number, get_string,
    load_json, make_id, raw_entry, resolve_timestamp, stringify_content,
)

logger = logging.getLogger(__name__)

TOOL_ID = "codex"

Locator = Callable[[dict], "dict | None"]


# ── Payload locations, tried in order ─────────────────────────────────

def _direct(msg: dict) -> dict | None:
    return msg


def _params(msg: dict) -> dict | None:
    return as_record(msg.get("params"))


def _params_event(msg: dict) -> dict | None:
    params = as_record(msg.get("params"))
    return as_record(params.get("event")) if params else None


def _result(msg: dict) -> dict | None:
    return as_record(msg.get("result"))


CONTENT_LOCATIONS: tuple[Locator, ...] = (_direct, _params, _params_event, _result)
ITEM_LOCATIONS: tuple[Locator, ...] = (_direct, _params, _result)
# (locator, id suffix) for batched sub-event arrays
BATCH_LOCATIONS: tuple[tuple[Locator, str | None], ...] = (
    (_direct, None),
    (_params, "params"),
    (_result, "result"),
)
BATCH_KEYS = ("events", "initial_messages", "messages")


def _pick_content(record: dict) -> str | None:
    direct = stringify_content(first_present(record, "message", "text", "delta", "content"))
    if direct:
        return direct
    error_text = stringify_content(record.get("error"))
    if error_text:
        return error_text
    warning_text = stringify_content(record.get("warning"))
    if warning_text:
        return warning_text
    return None


def extract_content(msg: dict) -> str | None:
    for locate in CONTENT_LOCATIONS:
        record = locate(msg)
        if record is None:
            continue
        text = _pick_content(record)
        if text:
            return text
    return None


def extract_item(msg: dict) -> dict | None:
    for locate in ITEM_LOCATIONS:
        record = locate(msg)
        item = as_record(record.get("item")) if record else None
        if item:
            return item
    return None


# ── Formatting ────────────────────────────────────────────────────────

def _patch_begin(msg: dict) -> str:
    changes = as_record(msg.get("changes"))
    n = len(changes) if changes else 0
    if n == 0:
        return "Applying patch"
    return f"Applying patch ({n} file{'' if n == 1 else 's'})"


def _patch_end(msg: dict) -> str:
    success = msg.get("success") is True
    detail = first_string(msg.get("stdout"), msg.get("stderr"))
    if detail:
        return f"Patch applied: {detail}" if success else f"Patch failed: {detail}"
    return "Patch applied" if success else "Patch failed"


def _thread_started(msg: dict) -> str:
    thread_id = first_string(msg.get("thread_id"), msg.get("threadId"))
    return f"Thread started: {thread_id}" if thread_id else "Thread started"


def _turn_completed(msg: dict) -> str:
    usage = as_record(msg.get("usage"))
    if not usage:
        return "Turn completed"
    parts = []
    for key, label in (("input_tokens", "in"), ("cached_input_tokens", "cached"),
                       ("output_tokens", "out")):
        value = get_number(usage.get(key))
        if value is not None:
            parts.append(f"{label} {value}")
    if not parts:
        return "Turn completed"
    return f"Turn completed ({', '.join(parts)})"


def _result_status(exit_code: float | None) -> str:
    return (ToolStatus.SUCCESS if exit_code == 0 else ToolStatus.FAILED).value


# ── Command lifecycle ─────────────────────────────────────────────────

def _command_begin(msg: dict, timestamp: float, id: str) -> NormalizedEntry | None:
    command = format_command(msg.get("command"))
    if not command:
        return None
    return create_entry(EntryType.COMMAND_RUN, command, timestamp, id, {
        "toolName": "execute",
        "toolInput": {"command": command, "cwd": get_string(msg.get("cwd"))},
        "toolUseId": get_string(msg.get("call_id")),
        "command": command,
        "status": ToolStatus.RUNNING.value,
    })


def _command_end(msg: dict, timestamp: float, id: str) -> NormalizedEntry | None:
    exit_code = get_number(msg.get("exit_code"))
    output = first_string(msg.get("aggregated_output"), msg.get("formatted_output")) or "\n".join(
        s for s in (get_string(msg.get("stdout")), get_string(msg.get("stderr"))) if s
    )
    if not output and exit_code is None:
        return None
    if not output:
        output = f"Exit code {exit_code:g}"
    return create_entry(EntryType.TOOL_RESULT, output, timestamp, id, {
        "toolUseId": get_string(msg.get("call_id")),
        "status": _result_status(exit_code),
        "exitCode": exit_code,
    })


def _command_item(item: dict, timestamp: float, started: bool, completed: bool,
                  id: str) -> NormalizedEntry | None:
    command = first_string(item.get("command"), item.get("cmd"), item.get("command_text"))
    tool_use_id = first_string(item.get("id"), item.get("command_id"))
    status = (get_string(item.get("status")) or "").lower()
    exit_code = get_number(item.get("exit_code"))
    output = stringify_content(item.get("aggregated_output")) or stringify_content(item.get("output")) or ""

    if not command and not output and exit_code is None:
        return None

    if started or status in ("in_progress", "running"):
        return create_entry(EntryType.COMMAND_RUN, command or "Command", timestamp, id, {
            "toolName": "execute",
            "toolInput": {"command": command} if command else None,
            "toolUseId": tool_use_id,
            "command": command,
            "status": ToolStatus.RUNNING.value,
        })

    if completed or status == "completed" or exit_code is not None:
        if not output:
            if exit_code is None:
                return None
            output = f"Exit code {exit_code:g}"
        return create_entry(EntryType.TOOL_RESULT, output, timestamp, id, {
            "toolUseId": tool_use_id,
            "status": _result_status(exit_code),
            "exitCode": exit_code,
        })

    return None


def _tool_item(item: dict, timestamp: float, id: str) -> NormalizedEntry | None:
    tool_call = as_record(item.get("tool_call")) or {}
    tool_name = first_string(item.get("tool_name"), item.get("name"), tool_call.get("name"))
    tool_input = as_record(item.get("input")) or as_record(tool_call.get("input"))
    tool_use_id = first_string(item.get("tool_call_id"), item.get("id"), tool_call.get("id"))

    if not tool_name and not tool_input:
        return None
    return create_entry(EntryType.TOOL_USE,
                        compact_dumps(tool_input) if tool_input else tool_name,
                        timestamp, id, {
                            "toolName": tool_name or "tool",
                            "toolInput": tool_input,
                            "toolUseId": tool_use_id,
                        })


def _item_event(msg: dict, timestamp: float, event_type: str, id: str) -> NormalizedEntry | None:
    item = extract_item(msg)
    if not item:
        return None

    item_type = (first_string(item.get("type"), item.get("kind")) or "").lower()
    started = event_type.endswith("_started")
    completed = event_type.endswith("_completed")

    if "reasoning" in item_type:
        return None
    if "command" in item_type or "exec" in item_type:
        return _command_item(item, timestamp, started, completed, id)
    if "tool" in item_type:
        return _tool_item(item, timestamp, id)

    text = stringify_content(first_present(item, "text", "content", "message", "output", "result"))
    if not text:
        return None
    if "agent" in item_type or "assistant" in item_type:
        return create_entry(EntryType.ASSISTANT_MESSAGE, text, timestamp, id)
    if "user" in item_type:
        return create_entry(EntryType.USER_MESSAGE, text, timestamp, id)
    return create_entry(EntryType.SYSTEM_MESSAGE, text, timestamp, id)


# ── Event dispatch ────────────────────────────────────────────────────

_ASSISTANT_EVENTS = frozenset({
    "agent_message", "agent_message_delta", "assistant_message", "message", "response",
})
_USER_EVENTS = frozenset({"user_message", "user"})
_TASK_EVENTS = frozenset({"task_started", "task_complete"})

# Events with a fixed summary; value is (id suffix, formatter).
_SUMMARY_EVENTS: dict[str, tuple[str, Callable[[dict], str]]] = {
    "patch_apply_begin": ("patch-begin", _patch_begin),
    "patch_apply_end": ("patch-end", _patch_end),
    "thread_started": ("thread", _thread_started),
    "turn_started": ("turn-start", lambda _msg: "Turn started"),
    "turn_completed": ("turn-end", _turn_completed),
}


def _unwrap_batch(record: dict, id_base: str, fallback_timestamp: float) -> list[NormalizedEntry] | None:
    for key in BATCH_KEYS:
        candidate = record.get(key)
        if not isinstance(candidate, list):
            continue
        entries: list[NormalizedEntry] = []
        for i, sub in enumerate(candidate):
            if not isinstance(sub, dict):
                continue
            parsed = parse_event(sub, make_id(id_base, f"evt-{i}"), fallback_timestamp)
            if isinstance(parsed, list):
                entries.extend(parsed)
            elif parsed is not None:
                entries.append(parsed)
        if entries:
            return entries
    return None


def parse_event(msg: dict, id_base: str, fallback_timestamp: float) -> ParseResult:
    """Normalize one decoded Codex event (possibly a batch of events)."""
    for locate, suffix in BATCH_LOCATIONS:
        record = locate(msg)
        if record is None:
            continue
        batch_base = make_id(id_base, suffix) if suffix else id_base
        nested = _unwrap_batch(record, batch_base, fallback_timestamp)
        if nested:
            return nested

    timestamp = resolve_timestamp(msg, fallback_timestamp)
    raw_type = first_string(msg.get("type"), msg.get("event"), msg.get("method"))
    content = extract_content(msg)

    if raw_type:
        etype = raw_type.lower().replace(".", "_")

        if "reasoning" in etype:
            return None
        if etype == "exec_command_begin":
            return _command_begin(msg, timestamp, make_id(id_base, "exec-begin"))
        if etype == "exec_command_end":
            return _command_end(msg, timestamp, make_id(id_base, "exec-end"))
        if etype in _SUMMARY_EVENTS:
            suffix, fmt = _SUMMARY_EVENTS[etype]
            return create_entry(EntryType.SYSTEM_MESSAGE, fmt(msg), timestamp, make_id(id_base, suffix))
        if etype.startswith("item_"):
            return _item_event(msg, timestamp, etype, make_id(id_base, "item"))
        if etype in _ASSISTANT_EVENTS:
            if not content:
                return None
            return create_entry(EntryType.ASSISTANT_MESSAGE, content, timestamp, make_id(id_base, "assistant"))
        if etype in _USER_EVENTS:
            if not content:
                return None
            return create_entry(EntryType.USER_MESSAGE, content, timestamp, make_id(id_base, "user"))
        if "error" in etype:
            return create_entry(EntryType.ERROR, content or raw_type, timestamp, make_id(id_base, "error"))
        if "warning" in etype:
            return create_entry(EntryType.SYSTEM_MESSAGE, content or raw_type, timestamp,
                                make_id(id_base, "warning"))
        if etype in _TASK_EVENTS:
            return create_entry(EntryType.SYSTEM_MESSAGE, format_type_label(raw_type), timestamp,
                                make_id(id_base, "task"))

    if content:
        return create_entry(EntryType.SYSTEM_MESSAGE, content, timestamp, make_id(id_base, "system"))
    return None


def parse(line: str, fallback_timestamp: float, id_base: str) -> ParseResult:
    """Normalize one Codex stdout line."""
    msg: Any = load_json(line)
    if msg is NOT_JSON or not isinstance(msg, dict):
        logger.debug("codex: non-object line %s", id_base)
        return raw_entry(line, fallback_timestamp, id_base)
    return parse_event(msg, id_base, fallback_timestamp)
