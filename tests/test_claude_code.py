"""Tests for the Claude Code stream-json adapter."""
from __future__ import annotations

from conftest import line

from agentlog.adapters.claude_code import parse
from agentlog.entry import EntryType

TS = 1000


def _parse(obj):
    return parse(line(obj), TS, "b")


class TestAssistant:
    def test_single_text_block(self):
        e = _parse({"type": "assistant", "message": {"content": [{"type": "text", "text": "hello"}]}})
        assert e.type == EntryType.ASSISTANT_MESSAGE
        assert e.content == "hello"
        assert e.id == "b-text-0"

    def test_multi_block_ids_share_timestamp(self):
        entries = _parse({"type": "assistant", "timestamp": 42, "message": {"content": [
            {"type": "text", "text": "Reading"},
            {"type": "tool_use", "id": "t1", "name": "Read", "input": {"file_path": "/a.py"}},
            {"type": "tool_use", "id": "t2", "name": "Grep", "input": {"pattern": "x"}},
        ]}})
        assert [e.id for e in entries] == ["b-text-0", "b-tool-1", "b-tool-2"]
        assert {e.timestamp for e in entries} == {42}
        read, grep = entries[1], entries[2]
        assert read.type == EntryType.FILE_READ
        assert read.content == "/a.py"
        assert read.meta("filePath") == "/a.py"
        assert read.meta("status") == "pending"
        assert read.tool_use_id == "t1"
        assert grep.type == EntryType.TOOL_USE
        assert grep.content == '{\n  "pattern": "x"\n}'

    def test_bash_and_edit_kinds(self):
        bash, edit = _parse({"type": "assistant", "message": {"content": [
            {"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "make"}},
            {"type": "tool_use", "id": "t2", "name": "Write", "input": {"file_path": "/b"}},
        ]}})
        assert bash.type == EntryType.COMMAND_RUN
        assert bash.content == "$ make"
        assert bash.meta("command") == "make"
        assert edit.type == EntryType.FILE_EDIT

    def test_tool_without_input_uses_name(self):
        e = _parse({"type": "assistant", "message": {"content": [
            {"type": "tool_use", "id": "t1", "name": "TodoRead"},
        ]}})
        assert e.content == "TodoRead"

    def test_no_content_placeholder_skipped(self):
        assert _parse({"type": "assistant", "message": {"content": [
            {"type": "text", "text": "(no content)"},
        ]}}) is None

    def test_plain_string_content(self):
        e = _parse({"type": "assistant", "message": {"content": "plain"}})
        assert e.content == "plain"
        assert e.id == "b-text"


class TestUser:
    def test_tool_use_result_concatenates_streams(self):
        e = _parse({
            "type": "user",
            "tool_use_result": {"stdout": "out", "stderr": "err"},
            "message": {"content": [{"type": "tool_result", "tool_use_id": "t1", "is_error": True}]},
        })
        assert e.type == EntryType.TOOL_RESULT
        assert e.content == "out\nerr"
        assert e.tool_use_id == "t1"
        assert e.meta("status") == "failed"

    def test_tool_result_block(self):
        e = _parse({"type": "user", "message": {"content": [
            {"type": "tool_result", "tool_use_id": "t9", "content": [{"type": "text", "text": "ok"}]},
        ]}})
        assert e.content == "ok"
        assert e.meta("status") == "success"
        assert e.tool_use_id == "t9"

    def test_prompt_text(self):
        e = _parse({"type": "user", "message": {"content": "do it"}})
        assert e.type == EntryType.USER_MESSAGE
        assert e.id == "b-user"

    def test_prompt_skips_non_string_text_blocks(self):
        e = _parse({"type": "user", "message": {"content": [
            {"type": "text", "text": 5},
            {"type": "text", "text": "real"},
        ]}})
        assert e.type == EntryType.USER_MESSAGE
        assert e.content == "real"

    def test_prompt_with_only_non_string_text_dropped(self):
        assert _parse({"type": "user", "message": {"content": [{"type": "text", "text": 5}]}}) is None

    def test_empty_tool_result_dropped(self):
        assert _parse({"type": "user", "message": {"content": [
            {"type": "tool_result", "tool_use_id": "t1", "content": ""},
        ]}}) is None


class TestSystemAndResult:
    def test_init(self):
        e = _parse({"type": "system", "subtype": "init", "model": "opus"})
        assert e.content == "System initialized with model: opus"

    def test_init_without_model(self):
        assert _parse({"type": "system", "subtype": "init"}).content.endswith("unknown")

    def test_subtype_fallback(self):
        assert _parse({"type": "system", "subtype": "compact"}).content == "System: compact"

    def test_unresolvable_system_dropped(self):
        assert _parse({"type": "system"}) is None

    def test_result_summary(self):
        e = _parse({"type": "result", "subtype": "success", "duration_ms": 2500, "total_cost_usd": 0.5})
        assert e.content == "✓ Completed in 2.5s ($0.5000)"
        assert e.meta("success") is True
        assert e.meta("durationMs") == 2500

    def test_failed_result(self):
        assert _parse({"type": "result", "subtype": "error_max_turns"}).content == "✗ Completed"


class TestFlatVariants:
    def test_flat_tool_use(self):
        e = _parse({"type": "tool_use", "name": "Edit", "tool_use_id": "t", "input": {"file_path": "/x"}})
        assert e.type == EntryType.FILE_EDIT
        assert e.id == "b-tool-use"

    def test_flat_tool_result_exit_code(self):
        e = _parse({"type": "tool_result", "tool_use_id": "t",
                    "output": "boom\n[Process exited with code 3]"})
        assert e.meta("exitCode") == 3
        assert e.meta("toolOutput").startswith("boom")

    def test_control_response(self):
        assert _parse({"type": "control_response"}).content == "Session initialized"


class TestDegradation:
    def test_unknown_type_dropped(self):
        assert _parse({"type": "mystery", "foo": 1}) is None

    def test_invalid_json_is_raw(self):
        e = parse("not json {", TS, "b")
        assert e.type == EntryType.SYSTEM_MESSAGE
        assert e.content == "not json {"
        assert e.timestamp == TS

    def test_non_object_json_is_raw(self):
        assert parse("[1, 2]", TS, "b").id == "b-raw"
