"""Shared primitives for the format adapters.

Every upstream protocol is read defensively: a field is only trusted after
one of the type guards here has accepted it. Nothing in this module raises
for any JSON-shaped input.
"""
from __future__ import annotations

import json
import math
import re
import time
from typing import Any, Callable, Union

from agentlog.entry import EntryType, NormalizedEntry

ParseResult = Union[NormalizedEntry, list[NormalizedEntry], None]

# (line, fallback_timestamp, id_base) -> entry | entries | None
LineParser = Callable[[str, float, str], ParseResult]


def now_ms() -> int:
    return int(time.time() * 1000)


# ── Type guards ───────────────────────────────────────────────────────

def get_string(value: Any) -> str | None:
    """Return *value* if it is a string with visible characters."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def get_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        if not math.isfinite(value):
            return None
    except OverflowError:  # ints too large for a float
        return None
    return value


def get_bool(value: Any) -> bool:
    return value is True


def as_record(value: Any) -> dict | None:
    return value if isinstance(value, dict) else None


def first_string(*values: Any) -> str | None:
    for value in values:
        s = get_string(value)
        if s is not None:
            return s
    return None


def first_present(record: dict, *keys: str) -> Any:
    """First value under *keys* that is not None (JS ``a ?? b ?? c``)."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


# ── JSON ──────────────────────────────────────────────────────────────

NOT_JSON = object()


def load_json(line: str) -> Any:
    """Decode *line*, returning the ``NOT_JSON`` sentinel on failure."""
    try:
        return json.loads(line)
    except (json.JSONDecodeError, ValueError, RecursionError):
        return NOT_JSON


def compact_dumps(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)


def pretty_dumps(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, indent=2)
    except (TypeError, ValueError):
        return str(value)


# ── Ids and timestamps ────────────────────────────────────────────────

def make_id(base: str, suffix: str | int) -> str:
    return f"{base}-{suffix}"


def resolve_timestamp(msg: dict, fallback: float) -> float:
    """Epoch ms from ``timestamp_ms``, then ``timestamp``, then *fallback*."""
    ts = get_number(msg.get("timestamp_ms"))
    if ts is not None:
        return ts
    ts = get_number(msg.get("timestamp"))
    if ts is not None:
        return ts
    return fallback


def create_entry(etype: EntryType, content: str, timestamp: float, id: str,
                 metadata: dict | None = None) -> NormalizedEntry:
    return NormalizedEntry(id=id, type=etype, timestamp=timestamp,
                           content=content, metadata=metadata)


def raw_entry(line: str, timestamp: float, id_base: str) -> NormalizedEntry:
    """The degraded form of a line that could not be parsed."""
    return create_entry(EntryType.SYSTEM_MESSAGE, line, timestamp, make_id(id_base, "raw"))


# ── Content stringification ───────────────────────────────────────────

def stringify_content(value: Any) -> str | None:
    """Best-effort human text for an arbitrary protocol payload.

    Strings pass through untouched, lists are concatenated, and objects are
    searched for ``text``/``content``/``message`` then a nested
    ``error``/``warning`` before falling back to compact JSON.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _js_number(value)
    if isinstance(value, list):
        parts = [p for p in (stringify_content(item) for item in value) if p]
        return "".join(parts) if parts else None
    if isinstance(value, dict):
        text = first_string(value.get("text"), value.get("content"), value.get("message"))
        if text:
            return text
        nested = first_present(value, "error", "warning")
        nested_record = as_record(nested)
        nested_text = get_string(nested) or (
            get_string(nested_record.get("message")) if nested_record else None
        )
        if nested_text:
            return nested_text
    return compact_dumps(value)


def stringify(value: Any) -> str:
    """Strings verbatim, None as empty, anything else as indented JSON."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return pretty_dumps(value)


def join_message_parts(content: list) -> str | None:
    """Concatenate string parts and ``text``/``content`` of object parts."""
    parts: list[str] = []
    for item in content:
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, dict):
            parts.append(first_string(item.get("text"), item.get("content")) or "")
    text = "".join(parts)
    return text if text.strip() else None


def _js_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ── Tool naming ───────────────────────────────────────────────────────

_TOOLCALL_SUFFIX_RE = re.compile(r"ToolCall$", re.IGNORECASE)
_CAMEL_RE = re.compile(r"([a-z0-9])([A-Z])")
_SEP_RE = re.compile(r"[-\s]+")


def to_snake_case(name: str) -> str:
    """``readToolCall`` -> ``read``; ``EditFile`` -> ``edit_file``."""
    value = _TOOLCALL_SUFFIX_RE.sub("", name)
    value = _CAMEL_RE.sub(r"\1_\2", value)
    value = _SEP_RE.sub("_", value)
    return value.lower()


_COMMAND_WORDS = ("bash", "shell", "command", "exec")
_READ_WORDS = ("read", "ls", "cat", "open")
_EDIT_WORDS = ("write", "edit", "patch", "apply")


def resolve_tool_entry_type(tool_name: str) -> EntryType:
    """Keyword heuristic mapping a free-form tool name to a call entry type."""
    lower = tool_name.lower()
    if any(w in lower for w in _COMMAND_WORDS):
        return EntryType.COMMAND_RUN
    if any(w in lower for w in _READ_WORDS):
        return EntryType.FILE_READ
    if any(w in lower for w in _EDIT_WORDS):
        return EntryType.FILE_EDIT
    return EntryType.TOOL_USE


def format_command(command: Any) -> str | None:
    if isinstance(command, list):
        return " ".join(stringify_content(part) or "" for part in command)
    if isinstance(command, str):
        return command
    return None


_EXIT_CODE_RE = re.compile(r"\[Process exited with code (\d+)\]")


def extract_exit_code(output: str) -> int | None:
    """Exit code from a ``[Process exited with code N]`` marker, if any.

    Best effort only: the marker can appear anywhere in arbitrary tool
    output and the first occurrence wins.
    """
    m = _EXIT_CODE_RE.search(output)
    return int(m.group(1)) if m else None


def format_type_label(raw_type: str) -> str:
    """``task_started`` -> ``Task Started``."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), raw_type.replace("_", " "))
