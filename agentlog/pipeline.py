"""Envelope dispatch: ``LogMsg[]`` -> ``NormalizedEntry[]``.

The whole pass is a pure function of its input. Callers holding a live
buffer re-run it over everything accumulated so far on each tick; the
sequence sort and the per-tool post filters are only correct when they see
the complete list.
"""
from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Callable, Iterable

from agentlog.adapters.registry import ToolStrategy, get_strategy
from agentlog.entry import LOG_MSG_TYPES, EntryType, LogMsg, NormalizedEntry
from agentlog.primitives import ParseResult, create_entry, now_ms, raw_entry

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _as_list(parsed: ParseResult) -> list[NormalizedEntry]:
    if parsed is None:
        return []
    if isinstance(parsed, list):
        return parsed
    return [parsed]


def _run_adapter(strategy: ToolStrategy, line: str, fallback_ts: float,
                 id_base: str) -> list[NormalizedEntry]:
    if strategy.parse is None:
        return []
    try:
        return _as_list(strategy.parse(line, fallback_ts, id_base))
    except Exception:
        # Adapters are meant to be total; a defect here must not lose the line.
        logger.warning("%s adapter failed on %s; showing raw line",
                       strategy.tool_id, id_base, exc_info=True)
        return []


def _from_normalized(msg: LogMsg, index: int, clock: Clock) -> NormalizedEntry | None:
    raw = msg.entry
    if raw is None:
        return None
    timestamp = msg.timestamp if msg.timestamp is not None else clock()
    id_base = msg.id or f"normalized-{index}"
    try:
        entry, has_id, has_ts = NormalizedEntry.from_dict(raw)
    except Exception:
        logger.warning("malformed normalized entry in %s; showing raw entry", id_base, exc_info=True)
        return raw_entry(_dump_entry(raw), timestamp, id_base)
    if has_id and has_ts:
        return entry
    return entry.replace(
        id=entry.id if has_id else id_base,
        timestamp=entry.timestamp if has_ts else timestamp,
    )


def _dump_entry(raw: dict) -> str:
    try:
        return json.dumps(raw, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(raw)


def _envelope_entries(msg: LogMsg, index: int, strategy: ToolStrategy,
                      clock: Clock) -> list[NormalizedEntry]:
    kind = msg.type
    if kind not in LOG_MSG_TYPES:
        logger.debug("skipping envelope %d with unknown kind %r", index, kind)
        return []

    if kind == "normalized":
        entry = _from_normalized(msg, index, clock)
        return [entry] if entry else []

    timestamp = msg.timestamp if msg.timestamp is not None else clock()

    if kind == "finished":
        exit_code = msg.exit_code
        content = (f"Process exited with code {exit_code}" if exit_code is not None
                   else "Process finished")
        return [create_entry(EntryType.SYSTEM_MESSAGE, content, timestamp,
                             msg.id or f"finished-{index}", {"exitCode": exit_code})]

    trimmed = (msg.content or "").strip()
    if not trimmed:
        return []
    id_base = msg.id or f"{kind}-{index}"

    if kind == "stderr":
        return [create_entry(EntryType.ERROR, trimmed, timestamp, f"{id_base}-stderr")]

    entries = _run_adapter(strategy, trimmed, timestamp, id_base)
    if entries:
        return entries
    return [create_entry(EntryType.SYSTEM_MESSAGE, trimmed, timestamp, f"{id_base}-stdout")]


def _stamp_sequence(entries: list[NormalizedEntry], sequence: float | None) -> list[NormalizedEntry]:
    if sequence is None:
        return entries
    out = []
    for entry in entries:
        if entry.sequence is None:
            entry = entry.replace(metadata={**(entry.metadata or {}), "sequence": sequence})
        out.append(entry)
    return out


def sort_by_sequence(entries: list[NormalizedEntry]) -> list[NormalizedEntry]:
    """Stable sort by ``metadata.sequence``, only if every entry has one."""
    if not entries or any(e.sequence is None for e in entries):
        return entries
    return sorted(entries, key=lambda e: e.sequence)


def normalize_logs(logs: Iterable[LogMsg | dict], tool_id: str | None, *,
                   now: Clock | None = None) -> list[NormalizedEntry]:
    """Normalize a session's log envelopes into an ordered entry list.

    Args:
        logs: Envelopes in arrival order, as ``LogMsg`` or raw dicts.
        tool_id: Which CLI produced them; unknown ids get verbatim output.
        now: Clock (epoch ms) used wherever a timestamp is missing.

    Returns:
        Entries in input order (or sequence order, see ``sort_by_sequence``),
        after the tool's post filter.
    """
    clock = now or now_ms
    strategy = get_strategy(tool_id)

    entries: list[NormalizedEntry] = []
    for index, value in enumerate(logs):
        msg = LogMsg.coerce(value)
        produced = _envelope_entries(msg, index, strategy, clock)
        entries.extend(_stamp_sequence(produced, msg.sequence))

    entries = sort_by_sequence(entries)
    if strategy.post_filter is not None:
        entries = strategy.post_filter(entries)

    if logger.isEnabledFor(logging.DEBUG):
        counts = Counter(e.type.value for e in entries)
        logger.debug("normalize_complete: tool=%s entries=%d types=%s",
                     strategy.tool_id, len(entries), dict(counts))
    return entries


def parse_line(tool_id: str | None, line: str, *, fallback_timestamp: float | None = None,
               id_base: str = "line") -> ParseResult:
    """Run a single stdout line through *tool_id*'s adapter (no envelope fallback)."""
    strategy = get_strategy(tool_id)
    if strategy.parse is None:
        return None
    ts = fallback_timestamp if fallback_timestamp is not None else now_ms()
    try:
        return strategy.parse(line, ts, id_base)
    except Exception:
        logger.warning("%s adapter failed on %s; showing raw line",
                       strategy.tool_id, id_base, exc_info=True)
        return raw_entry(line, ts, id_base)
