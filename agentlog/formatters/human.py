"""Human formatter: Rich terminal output."""
from __future__ import annotations

import os
import sys
from datetime import datetime

from rich.box import ASCII as ASCII_BOX, ROUNDED
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from agentlog.session import (
    GAP_THRESHOLD_SECS, format_size, ms_to_datetime, relative_delta, short_id,
    truncate_lines,
)

# ── Module state ──────────────────────────────────────────────────────

USE_ASCII = False
console = Console()


def init(ascii_mode: bool = False, force_color: bool = False):
    global USE_ASCII, console
    USE_ASCII = ascii_mode
    if force_color:
        console = Console(force_terminal=True)
    else:
        console = Console()


def detect_ascii() -> bool:
    encoding = getattr(sys.stdout, "encoding", "") or ""
    if encoding.lower().replace("-", "") not in ("utf8", "utf16", "utf32"):
        return True
    lang = os.environ.get("LANG", "") + os.environ.get("LC_ALL", "")
    if lang and "utf" not in lang.lower():
        return True
    return False


def box_style():
    return ASCII_BOX if USE_ASCII else ROUNDED


def table_box():
    if USE_ASCII:
        return ASCII_BOX
    from rich.box import HEAVY_HEAD
    return HEAVY_HEAD


def _width() -> int:
    return min(console.width, 120)


# ── Find formatter ────────────────────────────────────────────────────

def format_find(data: list[dict]) -> None:
    table = Table(title="Sessions", show_lines=False,
                  padding=(0, 1), width=_width(), box=table_box())
    table.add_column("ID", style="bold cyan", no_wrap=True, min_width=8)
    table.add_column("Project", style="dim", no_wrap=True, justify="right", max_width=12)
    table.add_column("Date", style="green", no_wrap=True, justify="right", min_width=16)
    table.add_column("Size", justify="right", no_wrap=True)
    table.add_column("Msgs", justify="right", no_wrap=True)
    table.add_column("Tool", style="magenta", no_wrap=True)
    table.add_column("First Message", no_wrap=True, overflow="ellipsis", ratio=1)

    for s in data:
        dt = datetime.fromisoformat(s["date"])
        table.add_row(
            short_id(s["id"]),
            s["project"],
            dt.strftime("%Y-%m-%d %H:%M"),
            format_size(s["size"]),
            str(s["messages"]),
            s.get("tool", ""),
            escape(s["preview"]),
        )

    console.print(table)
    console.print(f"\n[dim]{len(data)} sessions[/]")


# ── Entry rendering ───────────────────────────────────────────────────

_CALL_LABELS = {
    "command_run": ("cmd", "yellow"),
    "file_edit": ("edit", "magenta"),
    "file_read": ("read", "blue"),
    "tool_use": ("tool", "yellow"),
}

_MESSAGE_PANELS = {
    "assistant_message": ("Assistant", "green"),
    "user_message": ("User", "cyan"),
    "error": ("Error", "red"),
}


def _status_mark(status: str | None) -> tuple[str, str]:
    if status == "success":
        return ("ok" if USE_ASCII else "✓"), "green"
    if status == "failed":
        return ("x" if USE_ASCII else "✗"), "red"
    if status in ("running", "pending"):
        return ("..." if USE_ASCII else "…"), "yellow"
    return "", "dim"


def _meta(entry: dict, key: str):
    return (entry.get("metadata") or {}).get(key)


def _render_message(entry: dict) -> None:
    title, border = _MESSAGE_PANELS[entry["type"]]
    if _meta(entry, "isResult"):
        title = f"{title} (result)"
    text = entry.get("content", "")
    body = Markdown(text) if len(text) < 8000 and entry["type"] != "error" else Text(truncate_lines(text, 30))
    console.print(Panel(
        body, title=title, title_align="left",
        border_style=border, width=_width(),
        padding=(0, 1), box=box_style(),
    ))


def _render_result(result: dict, indent: str = "    ") -> None:
    mark, style = _status_mark(_meta(result, "status"))
    t = Text()
    t.append(f"{indent}[result] ", style="dim")
    if mark:
        t.append(f"{mark} ", style=style)
    t.append(truncate_lines(result.get("content", ""), max_lines=3), style="dim")
    console.print(t)


def _render_call(entry: dict) -> None:
    label, color = _CALL_LABELS[entry["type"]]
    t = Text()
    t.append(f"  [{label}] ", style=f"bold {color}")
    name = _meta(entry, "toolName")
    if name and entry["type"] == "tool_use":
        t.append(f"{name} ", style=f"bold {color}")
    t.append(truncate_lines(entry.get("content", ""), max_lines=2), style=color)
    result = entry.get("result")
    if result is None:
        mark, style = _status_mark(_meta(entry, "status"))
        if mark:
            t.append(f" {mark}", style=style)
    console.print(t)
    if result is not None:
        _render_result(result)


def render_entry(entry: dict) -> None:
    """Render one timeline item (an entry dict, optionally with ``result``)."""
    etype = entry.get("type", "")
    if etype in _MESSAGE_PANELS:
        _render_message(entry)
    elif etype in _CALL_LABELS:
        _render_call(entry)
    elif etype == "tool_result":
        _render_result(entry, indent="  ")
    else:
        t = Text()
        t.append("  [system] ", style="dim")
        t.append(truncate_lines(entry.get("content", ""), max_lines=3), style="dim")
        console.print(t)


def _print_segment_separator(ts: datetime | None, reason: str = ""):
    label = reason
    if ts:
        stamp = ts.strftime("%Y-%m-%d %H:%M")
        label = f"{reason}: {stamp}" if reason else stamp
    sep_char = "-" if USE_ASCII else "─"
    console.print(Text(f"{sep_char * 20}  {label}  {sep_char * 20}", style="bold dim"))


# ── Read formatter ────────────────────────────────────────────────────

def format_read(data: dict) -> None:
    entries = data.get("entries", [])
    if not entries:
        console.print("[yellow]No entries in this session.[/]")
        return

    prev_ts = None
    for entry in entries:
        ts = ms_to_datetime(entry.get("timestamp"))
        if ts and prev_ts:
            if (ts - prev_ts).total_seconds() > GAP_THRESHOLD_SECS:
                _print_segment_separator(ts, reason="gap")
            else:
                delta = relative_delta(prev_ts, ts)
                if delta:
                    console.print(Text(f"  +{delta}", style="dim italic"))
        render_entry(entry)
        prev_ts = ts or prev_ts


def format_slice(data: dict) -> None:
    console.print(f"[dim]{data.get('count', 0)} entries from {short_id(data.get('session', ''))}[/]")
    for entry in data.get("entries", []):
        console.print(Text(f"#{entry.get('index')}", style="dim"))
        render_entry(entry)


# ── Stats formatter ───────────────────────────────────────────────────

def _duration(dur: int) -> str:
    if dur >= 3600:
        return f"{dur // 3600}h {(dur % 3600) // 60}m {dur % 60}s"
    if dur >= 60:
        return f"{dur // 60}m {dur % 60}s"
    return f"{dur}s"


def format_stats(data: dict) -> None:
    w = _width()
    entries = data.get("entries", {})
    tools = data.get("tools", {})
    timing = data.get("timing", {})

    lines = []
    if timing:
        line = f"[bold]Duration:[/] {_duration(timing.get('duration_secs', 0))}"
        if timing.get("exit_code") is not None:
            line += f"  |  [bold]Exit code:[/] {timing['exit_code']}"
        lines.append(line)

    if entries:
        by_type = entries.get("by_type", {})
        counts = ", ".join(f"{k}: {v}" for k, v in by_type.items() if v)
        lines.append(f"[bold]Entries:[/] {entries.get('total', 0)} ({counts})")

    if tools:
        top_tools = sorted(tools.get("by_name", {}).items(), key=lambda x: x[1], reverse=True)[:10]
        tool_str = ", ".join(f"{n}: {c}" for n, c in top_tools)
        lines.append(f"[bold]Tools:[/] {tools.get('total_calls', 0)} calls ({tool_str})")
        if tools.get("failed", 0) > 0:
            lines.append(f"  [red]Failed: {tools['failed']} ({tools.get('error_rate', 0):.1%})[/]")
        if tools.get("unmatched", 0) > 0:
            lines.append(f"  [yellow]Without result: {tools['unmatched']}[/]")

    if data.get("cost_usd"):
        lines.append(f"[bold]Cost:[/] ${data['cost_usd']:.4f}")

    title = f"Session {short_id(data.get('session', ''))}"
    if data.get("tool"):
        title += f" ({data['tool']})"
    console.print(Panel(
        "\n".join(lines),
        title=title, border_style="blue", box=box_style(), width=w,
    ))


# ── Trace formatter ───────────────────────────────────────────────────

def format_trace(data: dict) -> None:
    events = data.get("events", [])
    console.print(Panel(
        f"Trace: {short_id(data.get('session', ''))} - {len(events)} events",
        style="bold blue", box=box_style(),
    ))

    prev_t = None
    for ev in events:
        ts = ms_to_datetime(ev.get("t"))
        delta = relative_delta(prev_t, ts) if prev_t and ts else ""
        prev_t = ts or prev_t

        etype = ev.get("type", "")
        line = Text()
        if delta:
            line.append(f"+{delta:>4s} ", style="dim italic")
        else:
            line.append("      ", style="dim")

        if etype == "call":
            label, color = _CALL_LABELS.get(ev.get("kind", ""), ("tool", "yellow"))
            line.append(f"[{label}] ", style=f"bold {color}")
            line.append(str(ev.get("name", "")), style=color)
            if ev.get("target"):
                line.append(f" {ev['target']}", style=f"dim {color}")
            mark, style = _status_mark(ev.get("status"))
            if mark:
                line.append(f" {mark}", style=style)
            if ev.get("elapsed_ms"):
                line.append(f" {ev['elapsed_ms'] / 1000:.1f}s", style="dim")
        elif etype == "user_message":
            line.append("[user] ", style="bold cyan")
            line.append(ev.get("preview", ""), style="cyan")
        elif etype == "assistant_message":
            line.append("[text] ", style="bold green")
            line.append(ev.get("preview", ""), style="green")
        elif etype == "error":
            line.append("[error] ", style="bold red")
            line.append(ev.get("preview", ""), style="red")
        elif etype == "orphan_result":
            line.append("[result] ", style="bold dim")
            line.append(ev.get("preview", ""), style="dim")
        else:
            line.append("[system] ", style="bold dim")
            line.append(ev.get("preview", ""), style="dim")

        console.print(line)


# ── Shapes formatter ──────────────────────────────────────────────────

def format_shapes(data: dict) -> None:
    if "coverage" in data:
        _format_coverage(data)
        return

    shapes = data.get("shapes", [])
    table = Table(title=f"Shapes for {short_id(data.get('session', ''))}",
                  show_lines=False, padding=(0, 1), box=table_box(), width=_width())
    table.add_column("Fingerprint", style="cyan", no_wrap=True, width=12)
    table.add_column("Type", style="bold", no_wrap=True, width=20)
    table.add_column("Count", justify="right", width=6)
    table.add_column("Keys", overflow="ellipsis")

    for shape in shapes:
        table.add_row(
            shape["fingerprint"],
            shape.get("type", ""),
            str(shape.get("count", 0)),
            shape.get("keys", ""),
        )

    console.print(table)
    footer = f"\n[dim]{len(shapes)} unique shapes"
    if data.get("non_json_lines"):
        footer += f", {data['non_json_lines']} non-JSON lines"
    console.print(footer + "[/]")

    for shape in shapes:
        paths = shape.get("paths")
        if paths:
            console.print(f"\n[bold cyan]{shape['fingerprint']}[/] ({shape.get('type', '')}):")
            for p in paths:
                console.print(f"  {p['path']}: [dim]{p['type']}[/]")


def _format_coverage(data: dict) -> None:
    cov = data["coverage"]
    lines = [
        f"[bold]Session shapes:[/] {cov['session_shapes']}",
        f"[bold]File shapes:[/] {cov['file_shapes']}",
        f"[bold]Matched:[/] {cov['matched']}",
        f"[bold]Coverage:[/] {cov['coverage_ratio']:.1%}",
    ]
    missing = cov.get("missing_from_file", [])
    if missing:
        lines.append(f"[red]Missing from file:[/] {', '.join(missing)}")
    extra = cov.get("extra_in_file", [])
    if extra:
        lines.append(f"[yellow]Extra in file:[/] {', '.join(extra)}")
    console.print(Panel(
        "\n".join(lines),
        title=f"Coverage: {short_id(data.get('session', ''))}",
        border_style="blue", box=box_style(),
    ))
