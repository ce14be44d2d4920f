"""Tests for call/result correlation."""
from __future__ import annotations

from agentlog.correlate import build_result_index, hidden_result_ids, timeline, unmatched_calls
from agentlog.entry import EntryType, NormalizedEntry
from agentlog.pipeline import normalize_logs


def _e(id, etype, tool_use_id=None, content=None):
    meta = {"toolUseId": tool_use_id} if tool_use_id else None
    return NormalizedEntry(id, etype, 0, content or id, meta)


class TestResultIndex:
    def test_last_writer_wins(self):
        entries = [_e("r1", EntryType.TOOL_RESULT, "t"), _e("r2", EntryType.TOOL_RESULT, "t")]
        assert build_result_index(entries)["t"].id == "r2"

    def test_ignores_non_results(self):
        assert build_result_index([_e("c", EntryType.COMMAND_RUN, "t")]) == {}


class TestHidden:
    def test_matched_result_hidden(self):
        entries = [_e("c", EntryType.FILE_EDIT, "t"), _e("r", EntryType.TOOL_RESULT, "t")]
        assert hidden_result_ids(entries) == {"r"}

    def test_orphan_result_visible(self):
        assert hidden_result_ids([_e("r", EntryType.TOOL_RESULT, "t")]) == set()

    def test_call_before_or_after_result(self):
        entries = [_e("r", EntryType.TOOL_RESULT, "t"), _e("c", EntryType.TOOL_USE, "t")]
        assert hidden_result_ids(entries) == {"r"}

    def test_never_deletes(self):
        entries = [_e("c", EntryType.FILE_READ, "t"), _e("r", EntryType.TOOL_RESULT, "t")]
        hidden_result_ids(entries)
        assert len(entries) == 2


class TestTimeline:
    def test_attaches_result_to_call(self):
        entries = [
            _e("u", EntryType.USER_MESSAGE),
            _e("c", EntryType.COMMAND_RUN, "t"),
            _e("r", EntryType.TOOL_RESULT, "t"),
        ]
        items = timeline(entries)
        assert [i.entry.id for i in items] == ["u", "c"]
        assert items[1].result.id == "r"
        assert items[0].result is None

    def test_superseded_duplicate_stays_standalone(self):
        entries = [
            _e("c", EntryType.COMMAND_RUN, "t"),
            _e("r1", EntryType.TOOL_RESULT, "t"),
            _e("r2", EntryType.TOOL_RESULT, "t"),
        ]
        items = timeline(entries)
        assert [i.entry.id for i in items] == ["c", "r1"]
        assert items[0].result.id == "r2"

    def test_unmatched_calls(self):
        entries = [_e("c1", EntryType.COMMAND_RUN, "a"), _e("c2", EntryType.TOOL_USE, "b"),
                   _e("r", EntryType.TOOL_RESULT, "a")]
        assert [e.id for e in unmatched_calls(entries)] == ["c2"]

    def test_claude_session(self, claude_logs):
        entries = normalize_logs(claude_logs, "claude-code")
        items = timeline(entries)
        call = next(i for i in items if i.entry.type == EntryType.COMMAND_RUN)
        assert call.result.content == "a.txt\nb.txt"
        assert all(i.entry.type != EntryType.TOOL_RESULT for i in items)
        assert len(items) == len(entries) - 1
