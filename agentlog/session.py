"""Session log discovery, envelope reading, and shared formatting helpers."""
from __future__ import annotations

import json
import os
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

from agentlog.adapters.registry import UNKNOWN_TOOL_ID
from agentlog.entry import LogMsg, NormalizedEntry
from agentlog.pipeline import normalize_logs


# ── Paths ─────────────────────────────────────────────────────────────

def data_dir() -> Path:
    env = os.environ.get("AGENTLOG_DATA_DIR")
    if env:
        return Path(env)
    xdg = Path.home() / ".config" / "agentlog"
    if xdg.exists():
        return xdg
    dot = Path.home() / ".agentlog"
    if dot.exists():
        return dot
    return xdg  # default


def sessions_dir() -> Path:
    return data_dir() / "data" / "sessions"


def default_tool_id() -> str:
    return os.environ.get("AGENTLOG_TOOL", "").strip()


# ── JSONL helpers ─────────────────────────────────────────────────────

def iter_jsonl(path: Path) -> Iterator[dict]:
    """Yield parsed records from a JSONL file, skipping bad lines."""
    with open(path, encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(rec, dict):
                yield rec


def log_time(msg: LogMsg) -> datetime | None:
    """Wall-clock time of an envelope: ``timestamp`` (ms) or ``created_at``."""
    if msg.timestamp is not None:
        return ms_to_datetime(msg.timestamp)
    return parse_ts(msg.created_at)


def _in_window(ts: datetime | None, after: datetime | None, before: datetime | None) -> bool:
    if after and ts and ts < after:
        return False
    if before and ts and ts > before:
        return False
    return True


# ── Session ───────────────────────────────────────────────────────────

class Session:
    """One persisted task log: a JSONL file of ``LogMsg`` envelopes."""

    __slots__ = ("id", "path", "project", "size", "mtime")

    def __init__(self, id: str, path: Path, project: str, size: int, mtime: float):
        self.id = id
        self.path = path
        self.project = project
        self.size = size
        self.mtime = mtime

    def logs(self, after: datetime | None = None, before: datetime | None = None) -> Iterator[LogMsg]:
        for raw in iter_jsonl(self.path):
            msg = LogMsg(raw)
            if _in_window(log_time(msg), after, before):
                yield msg

    def tool_id(self, override: str | None = None) -> str:
        """Tool that produced this log: *override*, envelope metadata, then env."""
        if override:
            return override
        for msg in self.logs():
            if msg.tool_id:
                return msg.tool_id
        return default_tool_id() or UNKNOWN_TOOL_ID

    def entries(self, tool_id: str | None = None, after: datetime | None = None,
                before: datetime | None = None,
                now: Callable[[], float] | None = None) -> list[NormalizedEntry]:
        return normalize_logs(list(self.logs(after=after, before=before)),
                              self.tool_id(tool_id), now=now)


# ── Discovery ─────────────────────────────────────────────────────────

def discover_sessions() -> list[Session]:
    """Find all session logs across all project directories."""
    sdir = sessions_dir()
    if not sdir.exists():
        return []
    sessions = []
    for project in sorted(sdir.iterdir()):
        if not project.is_dir():
            continue
        for f in sorted(project.iterdir()):
            if f.suffix == ".jsonl" and f.is_file():
                stat = f.stat()
                sessions.append(Session(
                    id=f.stem,
                    path=f,
                    project=project.name,
                    size=stat.st_size,
                    mtime=stat.st_mtime,
                ))
    sessions.sort(key=lambda s: s.mtime, reverse=True)
    return sessions


def resolve_session(sessions: list[Session], prefix: str) -> Session | None:
    """Exact id match first, then a unique prefix match."""
    exact = [s for s in sessions if s.id == prefix]
    if len(exact) == 1:
        return exact[0]
    matches = [s for s in sessions if s.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    return None


def resolve_session_verbose(sessions: list[Session], prefix: str, console) -> Session | None:
    """Resolve with user-facing error messages."""
    session = resolve_session(sessions, prefix)
    if session:
        return session
    matches = [s for s in sessions if s.id.startswith(prefix)]
    if len(matches) > 1:
        console.print(f"[yellow]Ambiguous prefix '{prefix}', matches {len(matches)} sessions:[/]")
        for m in matches[:5]:
            console.print(f"  {m.id} [dim]({m.project})[/]")
    return None


def count_messages(path: Path) -> int:
    """Number of output envelopes (stdout/stderr/normalized) in a log."""
    n = 0
    for rec in iter_jsonl(path):
        if rec.get("type") in ("stdout", "stderr", "normalized"):
            n += 1
    return n


def first_message_preview(entries: list[NormalizedEntry]) -> str:
    """First user (else assistant) message text, collapsed to one line."""
    for wanted in ("user_message", "assistant_message"):
        for entry in entries:
            if entry.type == wanted and entry.content.strip():
                text = re.sub(r"\x1b\[[0-9;]*m", "", entry.content)
                text = re.sub(r"\s+", " ", text).strip()
                return text[:80]
    return ""


# ── Formatting helpers ────────────────────────────────────────────────

GAP_THRESHOLD_SECS = 30 * 60


def short_id(full_id: str) -> str:
    return full_id[:8]


def format_size(n: int) -> str:
    if n < 1024:
        return f"{n}B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f}K"
    return f"{n / (1024 * 1024):.1f}M"


def parse_ts(ts: str | None) -> datetime | None:
    if not ts:
        return None
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def ms_to_datetime(ms: float | None) -> datetime | None:
    if ms is None:
        return None
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def relative_delta(a: datetime | None, b: datetime | None) -> str:
    if not a or not b:
        return ""
    delta = (b - a).total_seconds()
    if delta < 1:
        return ""
    if delta < 60:
        return f"{delta:.0f}s"
    if delta < 3600:
        return f"{delta / 60:.0f}m"
    return f"{delta / 3600:.1f}h"


_B64_RE = re.compile(r'[A-Za-z0-9+/]{200,}={0,2}')


def collapse_b64(text: str) -> str:
    """Replace long base64 blobs with a size summary."""
    def _repl(m):
        size = len(m.group(0)) * 3 // 4  # approximate decoded size
        return f"[base64 ~{format_size(size)}]"
    return _B64_RE.sub(_repl, text)


def compact_json(obj: Any, max_len: int = 120) -> str:
    try:
        s = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        s = str(obj)
    s = collapse_b64(s)
    if len(s) > max_len:
        s = s[:max_len] + "..."
    return s


def truncate_lines(text: str, max_lines: int = 3) -> str:
    lines = text.split("\n")
    if len(lines) <= max_lines:
        return text
    kept = "\n".join(lines[:max_lines])
    remaining = len(lines) - max_lines
    return f"{kept}\n... ({remaining} more lines)"


# ── Time filtering ────────────────────────────────────────────────────

def parse_time_arg(val: str) -> datetime:
    """Parse a time argument: ISO datetime, date, or relative (1h, 30m, 2d)."""
    m = re.match(r"^(\d+)([smhdw])$", val)
    if m:
        n, unit = int(m.group(1)), m.group(2)
        deltas = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}
        return datetime.now(timezone.utc) - timedelta(seconds=n * deltas[unit])
    try:
        dt = datetime.fromisoformat(val)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        pass
    raise ValueError(f"Cannot parse time: {val!r} (use ISO format, date, or relative like 1h/30m/2d)")

