"""Tool call / tool result correlation.

A pure function of the full entry list, recomputed on every pass. Nothing
is removed from the list: a result that pairs with a call is only marked
hidden so renderers can show it attached to its call.
"""
from __future__ import annotations

from typing import Iterable, NamedTuple

from agentlog.entry import EntryType, NormalizedEntry


class TimelineItem(NamedTuple):
    entry: NormalizedEntry
    result: NormalizedEntry | None = None


def build_result_index(entries: Iterable[NormalizedEntry]) -> dict[str, NormalizedEntry]:
    """``toolUseId`` -> ``tool_result`` entry; the last one wins."""
    index: dict[str, NormalizedEntry] = {}
    for entry in entries:
        if entry.type == EntryType.TOOL_RESULT and entry.tool_use_id:
            index[entry.tool_use_id] = entry
    return index


def hidden_result_ids(entries: list[NormalizedEntry]) -> set[str]:
    """Ids of results that render attached to a call instead of standalone."""
    index = build_result_index(entries)
    hidden: set[str] = set()
    for entry in entries:
        if not entry.is_call or not entry.tool_use_id:
            continue
        result = index.get(entry.tool_use_id)
        if result is not None:
            hidden.add(result.id)
    return hidden


def timeline(entries: list[NormalizedEntry]) -> list[TimelineItem]:
    """Display rows: each call carries its result, attached results are skipped."""
    index = build_result_index(entries)
    hidden = hidden_result_ids(entries)
    items: list[TimelineItem] = []
    for entry in entries:
        if entry.id in hidden and entry.type == EntryType.TOOL_RESULT:
            continue
        result = None
        if entry.is_call and entry.tool_use_id:
            result = index.get(entry.tool_use_id)
        items.append(TimelineItem(entry, result))
    return items


def unmatched_calls(entries: list[NormalizedEntry]) -> list[NormalizedEntry]:
    """Calls whose ``toolUseId`` has no result yet (still running, or lost)."""
    index = build_result_index(entries)
    return [e for e in entries if e.is_call and e.tool_use_id and e.tool_use_id not in index]
