"""Tests for agentlog.primitives."""
from __future__ import annotations

import pytest

from agentlog.entry import EntryType
from agentlog.primitives import (
    NOT_JSON, extract_exit_code, first_string, format_command, format_type_label,
    get_number, get_string, join_message_parts, load_json, raw_entry, resolve_timestamp,
    resolve_tool_entry_type, stringify, stringify_content, to_snake_case,
)


class TestGuards:
    def test_get_string_requires_visible_chars(self):
        assert get_string("  ") is None
        assert get_string("a") == "a"
        assert get_string(3) is None

    def test_get_number(self):
        assert get_number(0) == 0
        assert get_number(1.5) == 1.5
        assert get_number(True) is None
        assert get_number(float("nan")) is None
        assert get_number(float("inf")) is None
        assert get_number(10 ** 400) is None
        assert get_number("1") is None

    def test_first_string(self):
        assert first_string(None, "", " ", "x", "y") == "x"
        assert first_string(None) is None


class TestJson:
    def test_load_json_failure_sentinel(self):
        assert load_json("{nope") is NOT_JSON
        assert load_json("[1]") == [1]

    def test_raw_entry(self):
        e = raw_entry("garbage", 5, "b")
        assert e.type == EntryType.SYSTEM_MESSAGE
        assert e.content == "garbage"
        assert e.id == "b-raw"


class TestTimestamp:
    def test_order(self):
        assert resolve_timestamp({"timestamp_ms": 1, "timestamp": 2}, 3) == 1
        assert resolve_timestamp({"timestamp": 2}, 3) == 2
        assert resolve_timestamp({"timestamp": "2026-01-01"}, 3) == 3


class TestStringifyContent:
    def test_string_verbatim(self):
        assert stringify_content("  hi ") == "  hi "

    def test_list_concatenated(self):
        assert stringify_content(["a", {"text": "b"}, None]) == "ab"

    def test_empty_list(self):
        assert stringify_content([]) is None

    def test_object_text_keys(self):
        assert stringify_content({"message": "m"}) == "m"

    def test_nested_error(self):
        assert stringify_content({"error": {"message": "boom"}}) == "boom"

    def test_fallback_json(self):
        assert stringify_content({"a": 1}) == '{"a":1}'

    def test_numbers(self):
        assert stringify_content(3.0) == "3"
        assert stringify_content(False) == "false"

    def test_stringify(self):
        assert stringify(None) == ""
        assert stringify("x") == "x"
        assert stringify({"a": 1}) == '{\n  "a": 1\n}'

    def test_join_message_parts(self):
        assert join_message_parts(["a", {"content": "b"}, {"x": 1}]) == "ab"
        assert join_message_parts([" "]) is None


class TestToolNaming:
    @pytest.mark.parametrize("raw, expected", [
        ("readToolCall", "read"),
        ("EditFile", "edit_file"),
        ("run-shell command", "run_shell_command"),
        ("grep", "grep"),
    ])
    def test_to_snake_case(self, raw, expected):
        assert to_snake_case(raw) == expected

    @pytest.mark.parametrize("name, expected", [
        ("shell", EntryType.COMMAND_RUN),
        ("run_command", EntryType.COMMAND_RUN),
        ("read_file", EntryType.FILE_READ),
        ("ls", EntryType.FILE_READ),
        ("apply_patch", EntryType.FILE_EDIT),
        ("write", EntryType.FILE_EDIT),
        ("grep", EntryType.TOOL_USE),
    ])
    def test_entry_type_heuristic(self, name, expected):
        assert resolve_tool_entry_type(name) == expected

    def test_format_command(self):
        assert format_command(["ls", "-la"]) == "ls -la"
        assert format_command("pwd") == "pwd"
        assert format_command(None) is None

    def test_type_label(self):
        assert format_type_label("task_started") == "Task Started"


class TestExitCode:
    def test_marker(self):
        assert extract_exit_code("out\n[Process exited with code 2]\n") == 2

    def test_first_marker_wins(self):
        assert extract_exit_code("[Process exited with code 1] [Process exited with code 0]") == 1

    def test_absent(self):
        assert extract_exit_code("exit code 3") is None
