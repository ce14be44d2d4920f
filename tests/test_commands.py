"""Tests for the CLI commands and entry point."""
from __future__ import annotations

import json

import pytest

from agentlog.__main__ import main
from agentlog.commands.find import cmd_find
from agentlog.commands.read import cmd_read
from agentlog.commands.shapes import cmd_shapes, deep_walk, fingerprint
from agentlog.commands.slice import _parse_index_range, cmd_slice
from agentlog.commands.stats import cmd_stats
from agentlog.commands.trace import cmd_trace
from agentlog.session import discover_sessions


class TestFind:
    def test_lists_session(self, claude_session):
        [row] = cmd_find([claude_session])
        assert row["id"] == "abc12345-claude"
        assert row["project"] == "demo"
        assert row["tool"] == "claude-code"
        assert row["messages"] == 7
        assert row["preview"] == "List the files"

    def test_skips_empty(self, write_session):
        write_session([{"type": "finished"}], task="empty")
        sessions = discover_sessions()
        assert cmd_find(sessions) == []
        assert len(cmd_find(sessions, include_empty=True)) == 1


class TestRead:
    def test_results_attached(self, claude_session):
        data = cmd_read(claude_session)
        types = [e["type"] for e in data["entries"]]
        assert "tool_result" not in types
        call = next(e for e in data["entries"] if e["type"] == "command_run")
        assert call["result"]["content"] == "a.txt\nb.txt"
        assert call["result"]["metadata"]["toolUseId"] == "tu1"

    def test_raw_lists_everything(self, claude_session):
        data = cmd_read(claude_session, raw=True)
        assert len(data["entries"]) == 9
        assert all("result" not in e for e in data["entries"])


class TestStats:
    def test_full(self, claude_session):
        data = cmd_stats(claude_session)
        assert data["entries"]["total"] == 9
        assert data["entries"]["by_type"]["system_message"] == 3
        assert data["tools"]["total_calls"] == 1
        assert data["tools"]["by_name"] == {"Bash": 1}
        assert data["tools"]["failed"] == 0
        assert data["tools"]["unmatched"] == 0
        assert data["timing"]["duration_secs"] == 7
        assert data["timing"]["exit_code"] == 0
        assert data["cost_usd"] == pytest.approx(0.0123)

    def test_aspect(self, claude_session):
        data = cmd_stats(claude_session, aspect="tools")
        assert set(data) == {"session", "tools"}

    def test_failed_and_unmatched(self, write_session):
        logs = [
            {"type": "stdout", "timestamp": 1, "content": json.dumps(
                {"type": "exec_command_begin", "call_id": "c1", "command": "false"})},
            {"type": "stdout", "timestamp": 2, "content": json.dumps(
                {"type": "exec_command_end", "call_id": "c1", "exit_code": 1})},
            {"type": "stdout", "timestamp": 3, "content": json.dumps(
                {"type": "exec_command_begin", "call_id": "c2", "command": "sleep 9"})},
        ]
        write_session(logs, task="codex-run")
        data = cmd_stats(discover_sessions()[0], tool_id="codex")
        assert data["tools"]["failed"] == 1
        assert data["tools"]["error_rate"] == 1.0
        assert data["tools"]["unmatched"] == 1
        assert data["tools"]["by_name"] == {"execute": 2}

    def test_oversized_cost_ignored(self, write_session):
        logs = [
            {"type": "normalized", "timestamp": 1, "entry": {
                "type": "system_message", "content": "done", "metadata": {"costUsd": 10 ** 400}}},
            {"type": "normalized", "timestamp": 2, "entry": {
                "type": "system_message", "content": "done", "metadata": {"costUsd": 0.5}}},
        ]
        write_session(logs, task="big-cost")
        data = cmd_stats(discover_sessions()[0], tool_id="claude-code")
        assert data["cost_usd"] == pytest.approx(0.5)


class TestTrace:
    def test_call_with_result(self, claude_session):
        events = cmd_trace(claude_session)["events"]
        [call] = [e for e in events if e["type"] == "call"]
        assert call["name"] == "Bash"
        assert call["target"] == "ls"
        assert call["status"] == "success"
        assert call["result"] == "a.txt b.txt"
        assert call["elapsed_ms"] == 2000
        assert len(events) == 8

    def test_calls_only(self, claude_session):
        events = cmd_trace(claude_session, calls_only=True)["events"]
        assert [e["type"] for e in events] == ["call"]


class TestFingerprint:
    def test_deterministic(self):
        rec = {"type": "user", "message": {"content": "hi"}}
        assert fingerprint(rec) == fingerprint(rec)

    def test_different_types_differ(self):
        assert fingerprint({"type": "user"}) != fingerprint({"type": "assistant"})

    def test_nested_params_type_differs(self):
        a = {"method": "codex/event", "params": {"msg": {"type": "exec_command_begin"}}}
        b = {"method": "codex/event", "params": {"msg": {"type": "exec_command_end"}}}
        assert fingerprint(a) != fingerprint(b)

    def test_content_blocks_influence(self):
        r1 = {"type": "assistant", "message": {"content": [{"type": "text"}]}}
        r2 = {"type": "assistant", "message": {"content": [{"type": "text"}, {"type": "tool_use"}]}}
        assert fingerprint(r1) != fingerprint(r2)

    def test_length(self):
        assert len(fingerprint({"type": "user"})) == 12


class TestDeepWalk:
    def test_paths(self):
        paths = deep_walk({"a": [{"b": 1}]})
        assert ("$", "dict") in paths
        assert ("$.a", "list") in paths
        assert ("$.a[*].b", "int") in paths

    def test_max_depth(self):
        assert deep_walk({"a": {"b": 1}}, max_depth=0) == [("$", "dict")]


class TestShapes:
    def test_inventory(self, claude_session):
        data = cmd_shapes(claude_session)
        assert len(data["shapes"]) == 6
        assert data["non_json_lines"] == 0
        assert sum(s["count"] for s in data["shapes"]) == 6

    def test_deep(self, claude_session):
        data = cmd_shapes(claude_session, deep=True)
        assert all("paths" in s for s in data["shapes"])

    def test_verify_against_previous(self, claude_session, tmp_path):
        previous = tmp_path / "shapes.json"
        previous.write_text(json.dumps(cmd_shapes(claude_session)))
        cov = cmd_shapes(claude_session, verify_file=str(previous))["coverage"]
        assert cov["coverage_ratio"] == 1.0
        assert cov["missing_from_file"] == []


class TestSlice:
    def test_index_range(self, claude_session):
        data = cmd_slice(claude_session, index_range="1:3")
        assert data["count"] == 2
        assert [e["index"] for e in data["entries"]] == [1, 2]

    def test_open_range(self, claude_session):
        assert cmd_slice(claude_session, index_range="7:")["count"] == 2

    def test_type_filter(self, claude_session):
        data = cmd_slice(claude_session, types=["error"])
        assert [e["content"] for e in data["entries"]] == ["warning: slow disk"]

    @pytest.mark.parametrize("value", ["5", "a:b", "1:2:3"])
    def test_invalid_range(self, value):
        with pytest.raises(ValueError):
            _parse_index_range(value)


class TestCli:
    def test_find_json(self, claude_session, capsys):
        main(["find", "--format", "json"])
        rows = json.loads(capsys.readouterr().out)
        assert rows[0]["id"] == "abc12345-claude"

    def test_bare_session_means_read(self, claude_session, capsys):
        main(["abc123", "-f", "json"])
        data = json.loads(capsys.readouterr().out)
        assert data["session"] == "abc12345-claude"
        assert data["tool"] == "claude-code"

    def test_tool_override(self, claude_session, capsys):
        main(["read", "abc", "-f", "json", "--tool", "aider"])
        data = json.loads(capsys.readouterr().out)
        assert all(e["type"] in ("system_message", "error") for e in data["entries"])

    def test_stats_aspect(self, claude_session, capsys):
        main(["stats", "abc", "timing", "-f", "json"])
        data = json.loads(capsys.readouterr().out)
        assert data["timing"]["exit_code"] == 0

    def test_unknown_session_exits(self, claude_session):
        with pytest.raises(SystemExit) as exc:
            main(["read", "zzz", "-f", "json"])
        assert exc.value.code == 1

    def test_bad_index_exits(self, claude_session):
        with pytest.raises(SystemExit) as exc:
            main(["slice", "abc", "--index", "x", "-f", "json"])
        assert exc.value.code == 1

    def test_bad_time_exits(self, claude_session):
        with pytest.raises(SystemExit) as exc:
            main(["find", "--after", "whenever"])
        assert exc.value.code == 1

    @pytest.mark.parametrize("argv", [
        ["read", "abc"],
        ["read", "abc", "--raw"],
        ["stats", "abc"],
        ["trace", "abc"],
        ["shapes", "abc", "--deep"],
        ["slice", "abc", "--index", "0:4"],
        ["find"],
    ])
    def test_human_output_renders(self, claude_session, capsys, argv):
        main(argv + ["-f", "human", "--ascii"])
        assert capsys.readouterr().out
