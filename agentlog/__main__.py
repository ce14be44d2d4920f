"""CLI entry point for agentlog."""
from __future__ import annotations

import argparse
import logging
import os
import sys

from agentlog.adapters.registry import known_tool_ids
from agentlog.session import discover_sessions, parse_time_arg, resolve_session_verbose

KNOWN_COMMANDS = {"find", "read", "stats", "trace", "shapes", "slice"}


def _build_parser() -> argparse.ArgumentParser:
    # Shared global options, inherited by every subcommand
    global_opts = argparse.ArgumentParser(add_help=False)
    global_opts.add_argument("--format", "-f", choices=["human", "json", "toon"],
                             default=None, help="Output format (default: auto-detect)")
    global_opts.add_argument("--project", "-p", metavar="NAME",
                             help="Filter by project name (substring match)")
    global_opts.add_argument("--after", metavar="TIME",
                             help="Show entries after TIME (ISO, date, or relative: 1h/30m/2d)")
    global_opts.add_argument("--before", metavar="TIME",
                             help="Show entries before TIME (ISO, date, or relative: 1h/30m/2d)")
    global_opts.add_argument("--tool", "-t", metavar="ID",
                             help=f"Tool that produced the log ({', '.join(known_tool_ids())})")
    global_opts.add_argument("--ascii", action="store_true",
                             help="Force ASCII output (no Unicode box drawing)")
    global_opts.add_argument("--color", action="store_true",
                             help="Force color output (for piping to less -R)")
    global_opts.add_argument("--verbose", "-v", action="store_true",
                             help="Debug logging to stderr")

    parser = argparse.ArgumentParser(
        prog="agentlog",
        description="Coding-agent session log normalizer",
        parents=[global_opts],
    )
    parser.add_argument("--version", action="version", version="agentlog 0.1.0")

    sub = parser.add_subparsers(dest="command")

    p_find = sub.add_parser("find", parents=[global_opts], help="List all sessions")
    p_find.add_argument("--all", action="store_true", help="Include sessions with no output")

    p_read = sub.add_parser("read", parents=[global_opts], help="Render a normalized timeline")
    p_read.add_argument("session", help="Session ID (prefix match)")
    p_read.add_argument("--raw", action="store_true",
                        help="Show tool results standalone instead of under their calls")

    p_stats = sub.add_parser("stats", parents=[global_opts], help="Session statistics")
    p_stats.add_argument("session", help="Session ID (prefix match)")
    p_stats.add_argument("aspect", nargs="?", choices=["entries", "tools", "timing"],
                         help="Show specific aspect")

    p_trace = sub.add_parser("trace", parents=[global_opts], help="Call/result timeline")
    p_trace.add_argument("session", help="Session ID (prefix match)")
    p_trace.add_argument("--calls", action="store_true", help="Tool calls only")

    p_shapes = sub.add_parser("shapes", parents=[global_opts], help="Shape fingerprint inventory")
    p_shapes.add_argument("session", help="Session ID (prefix match)")
    p_shapes.add_argument("--deep", action="store_true", help="Deep nested shape walk")
    p_shapes.add_argument("--verify", metavar="FILE", help="Coverage comparison file")

    p_slice = sub.add_parser("slice", parents=[global_opts], help="Extract time/index window")
    p_slice.add_argument("session", help="Session ID (prefix match)")
    p_slice.add_argument("--index", metavar="RANGE", help="Index range (e.g. 10:20)")
    p_slice.add_argument("--type", dest="types", action="append", metavar="TYPE",
                         help="Only entries of TYPE (repeatable)")

    return parser


def _get_format(args) -> str:
    """Determine output format from args + TTY detection."""
    if args.format:
        return args.format
    if not sys.stdout.isatty():
        return "json"
    return "human"


def _setup_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else os.environ.get("AGENTLOG_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _emit(data, fmt: str, human) -> None:
    if fmt == "json":
        from agentlog.formatters.json import format_json
        format_json(data)
    elif fmt == "toon":
        from agentlog.formatters.toon import format_toon
        format_toon(data)
    else:
        human(data)


def main(argv: list[str] | None = None):
    parser = _build_parser()

    # Bare `agentlog <session-id>` (no subcommand) means read
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] not in KNOWN_COMMANDS and not argv[0].startswith("-"):
        argv = ["read"] + argv

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    from agentlog.formatters import human
    human.init(ascii_mode=args.ascii or human.detect_ascii(), force_color=args.color)
    console = human.console

    fmt = _get_format(args)

    try:
        time_after = parse_time_arg(args.after) if args.after else None
        time_before = parse_time_arg(args.before) if args.before else None
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)

    sessions = discover_sessions()
    if args.project:
        sessions = [s for s in sessions if args.project in s.project]

    if not args.command or args.command == "find":
        from agentlog.commands.find import cmd_find
        data = cmd_find(sessions, include_empty=getattr(args, "all", False), tool_id=args.tool)
        _emit(data, fmt, human.format_find)
        return

    session = resolve_session_verbose(sessions, args.session, console)
    if not session:
        console.print(f"[red]No session matching '{args.session}'[/]")
        sys.exit(1)

    if args.command == "read":
        from agentlog.commands.read import cmd_read
        data = cmd_read(session, tool_id=args.tool, raw=args.raw,
                        after=time_after, before=time_before)
        _emit(data, fmt, human.format_read)
        return

    if args.command == "stats":
        from agentlog.commands.stats import cmd_stats
        data = cmd_stats(session, aspect=args.aspect, tool_id=args.tool,
                         after=time_after, before=time_before)
        _emit(data, fmt, human.format_stats)
        return

    if args.command == "trace":
        from agentlog.commands.trace import cmd_trace
        data = cmd_trace(session, calls_only=args.calls, tool_id=args.tool,
                         after=time_after, before=time_before)
        _emit(data, fmt, human.format_trace)
        return

    if args.command == "shapes":
        from agentlog.commands.shapes import cmd_shapes
        try:
            data = cmd_shapes(session, deep=args.deep, verify_file=args.verify)
        except (OSError, ValueError) as e:
            console.print(f"[red]Cannot read verify file: {e}[/]")
            sys.exit(1)
        _emit(data, fmt, human.format_shapes)
        return

    if args.command == "slice":
        from agentlog.commands.slice import cmd_slice
        try:
            data = cmd_slice(session, tool_id=args.tool, after=time_after, before=time_before,
                             index_range=args.index, types=args.types)
        except ValueError as e:
            console.print(f"[red]{e}[/]")
            sys.exit(1)
        _emit(data, fmt, human.format_slice)
        return


if __name__ == "__main__":
    main()
