"""Shared fixtures for agentlog tests."""
from __future__ import annotations

import json
import pytest
from pathlib import Path

FIXED_NOW = 1_767_225_600_000  # 2026-01-01T00:00:00Z in epoch ms


def line(obj) -> str:
    """Serialize one protocol event as a stdout line."""
    return json.dumps(obj)


def stdout(obj, ts: float, id: str | None = None, **extra) -> dict:
    msg = {"type": "stdout", "content": obj if isinstance(obj, str) else line(obj), "timestamp": ts}
    if id is not None:
        msg["id"] = id
    msg.update(extra)
    return msg


@pytest.fixture
def fixed_now():
    return lambda: FIXED_NOW


@pytest.fixture
def tmp_jsonl(tmp_path):
    """Factory: write a list of dicts as a JSONL file, return path."""
    def _make(records: list[dict], name: str = "session.jsonl") -> Path:
        p = tmp_path / name
        with open(p, "w") as f:
            for rec in records:
                f.write(json.dumps(rec) + "\n")
        return p
    return _make


@pytest.fixture
def claude_logs():
    """A short Claude Code session: prompt, a Bash call, its result, a summary."""
    t = FIXED_NOW
    return [
        stdout({"type": "system", "subtype": "init", "model": "claude-sonnet"}, t, "m0",
               meta={"tool_id": "claude-code"}),
        stdout({"type": "user", "message": {"content": "List the files"}}, t + 1000, "m1"),
        stdout({"type": "assistant", "message": {"content": [
            {"type": "text", "text": "Let me look."},
            {"type": "tool_use", "id": "tu1", "name": "Bash", "input": {"command": "ls"}},
        ]}}, t + 2000, "m2"),
        stdout({"type": "user", "message": {"content": [
            {"type": "tool_result", "tool_use_id": "tu1", "content": "a.txt\nb.txt"},
        ]}}, t + 4000, "m3"),
        stdout({"type": "assistant", "message": {"content": [
            {"type": "text", "text": "Two files."},
        ]}}, t + 5000, "m4"),
        stdout({"type": "result", "subtype": "success", "duration_ms": 5000,
                "total_cost_usd": 0.0123}, t + 6000, "m5"),
        {"type": "stderr", "content": "warning: slow disk", "timestamp": t + 6500, "id": "m6"},
        {"type": "finished", "exit_code": 0, "timestamp": t + 7000, "id": "m7"},
    ]


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    root = tmp_path / "data-root"
    monkeypatch.setenv("AGENTLOG_DATA_DIR", str(root))
    monkeypatch.delenv("AGENTLOG_TOOL", raising=False)
    return root


@pytest.fixture
def write_session(data_dir):
    """Factory: persist LogMsg envelopes as ``{project}/{task}.jsonl``."""
    def _make(logs: list[dict], task: str = "task-0001", project: str = "demo") -> Path:
        pdir = data_dir / "data" / "sessions" / project
        pdir.mkdir(parents=True, exist_ok=True)
        p = pdir / f"{task}.jsonl"
        with open(p, "w") as f:
            for msg in logs:
                f.write(json.dumps(msg) + "\n")
        return p
    return _make


@pytest.fixture
def claude_session(write_session, claude_logs):
    from agentlog.session import discover_sessions
    write_session(claude_logs, task="abc12345-claude")
    return discover_sessions()[0]
