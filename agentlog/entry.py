"""Canonical event model: LogMsg envelopes in, NormalizedEntry records out."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any


class EntryType(str, Enum):
    ASSISTANT_MESSAGE = "assistant_message"
    USER_MESSAGE = "user_message"
    SYSTEM_MESSAGE = "system_message"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    COMMAND_RUN = "command_run"
    FILE_EDIT = "file_edit"
    FILE_READ = "file_read"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class ToolStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


# Entry types that represent a tool invocation (the "call" side of a pair).
CALL_TYPES = frozenset({
    EntryType.TOOL_USE,
    EntryType.COMMAND_RUN,
    EntryType.FILE_EDIT,
    EntryType.FILE_READ,
})

_ENTRY_TYPES = {t.value: t for t in EntryType}


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _clean_metadata(metadata: dict | None) -> dict | None:
    if not metadata:
        return None
    cleaned = {k: v for k, v in metadata.items() if v is not None}
    return cleaned or None


# ── NormalizedEntry ───────────────────────────────────────────────────

@dataclass(frozen=True)
class NormalizedEntry:
    """One canonical timeline event.

    Entries are never updated in place. A finished tool call is a second
    entry (usually ``tool_result``) linked back through
    ``metadata["toolUseId"]``.
    """

    id: str
    type: EntryType
    timestamp: float
    content: str
    metadata: dict | None = None

    def __post_init__(self):
        object.__setattr__(self, "metadata", _clean_metadata(self.metadata))

    def meta(self, key: str, default: Any = None) -> Any:
        if not self.metadata:
            return default
        return self.metadata.get(key, default)

    @property
    def tool_use_id(self) -> str | None:
        value = self.meta("toolUseId")
        return value if isinstance(value, str) and value else None

    @property
    def sequence(self) -> float | None:
        value = self.meta("sequence")
        return value if _is_number(value) else None

    @property
    def is_call(self) -> bool:
        return self.type in CALL_TYPES

    @property
    def is_result(self) -> bool:
        """True for the synthetic end-of-turn summary some tools emit."""
        return self.meta("isResult") is True

    def replace(self, **changes: Any) -> NormalizedEntry:
        fields = {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "content": self.content,
            "metadata": dict(self.metadata) if self.metadata else None,
        }
        fields.update(changes)
        return NormalizedEntry(**fields)

    def to_dict(self) -> dict:
        out: dict = {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "content": self.content,
        }
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> tuple[NormalizedEntry, bool, bool]:
        """Build an entry from a pre-normalized dict.

        Returns ``(entry, has_id, has_timestamp)`` so the envelope layer can
        fill in what the producer left out.
        """
        raw_id = raw.get("id")
        has_id = isinstance(raw_id, str) and bool(raw_id)
        ts = raw.get("timestamp")
        has_ts = _is_number(ts)

        etype = raw.get("type")
        etype = (_ENTRY_TYPES.get(etype, EntryType.SYSTEM_MESSAGE) if isinstance(etype, str)
                 else EntryType.SYSTEM_MESSAGE)

        content = raw.get("content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            try:
                content = json.dumps(content, ensure_ascii=False)
            except (TypeError, ValueError):
                content = str(content)

        metadata = raw.get("metadata")
        entry = cls(
            id=raw_id if has_id else "",
            type=etype,
            timestamp=ts if has_ts else 0,
            content=content,
            metadata=dict(metadata) if isinstance(metadata, dict) else None,
        )
        return entry, has_id, has_ts


# ── LogMsg ────────────────────────────────────────────────────────────

LOG_MSG_TYPES = ("stdout", "stderr", "normalized", "finished")


class LogMsg:
    """Thin wrapper over a raw log envelope dict with typed property accessors."""

    __slots__ = ("raw",)

    def __init__(self, raw: dict):
        self.raw = raw

    @classmethod
    def coerce(cls, value: LogMsg | dict) -> LogMsg:
        if isinstance(value, LogMsg):
            return value
        return cls(value if isinstance(value, dict) else {})

    @property
    def type(self) -> str:
        value = self.raw.get("type")
        return value if isinstance(value, str) else ""

    @property
    def content(self) -> str | None:
        value = self.raw.get("content")
        return value if isinstance(value, str) else None

    @property
    def entry(self) -> dict | None:
        value = self.raw.get("entry")
        return value if isinstance(value, dict) else None

    @property
    def timestamp(self) -> float | None:
        value = self.raw.get("timestamp")
        return value if _is_number(value) else None

    @property
    def id(self) -> str | None:
        value = self.raw.get("id")
        return value if isinstance(value, str) and value else None

    @property
    def exit_code(self) -> int | None:
        value = self.raw.get("exit_code")
        return value if _is_number(value) else None

    @property
    def meta(self) -> dict:
        value = self.raw.get("meta")
        return value if isinstance(value, dict) else {}

    @property
    def sequence(self) -> float | None:
        value = self.meta.get("sequence", self.raw.get("sequence"))
        return value if _is_number(value) else None

    @property
    def tool_id(self) -> str:
        meta = self.meta
        for key in ("tool_id", "toolId", "cli_tool_id"):
            value = meta.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return ""

    @property
    def task_id(self) -> str:
        return self.raw.get("task_id", "") or ""

    @property
    def session_id(self) -> str:
        return self.raw.get("session_id", "") or ""

    @property
    def created_at(self) -> str:
        return self.raw.get("created_at", "") or ""

    def __repr__(self) -> str:
        return f"LogMsg(type={self.type!r}, id={self.id!r})"
