"""Tool id -> normalization strategy."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from agentlog.adapters import claude_code, codex, cursor_agent, gemini, opencode
from agentlog.entry import NormalizedEntry
from agentlog.primitives import LineParser

PostFilter = Callable[[list[NormalizedEntry]], list[NormalizedEntry]]

UNKNOWN_TOOL_ID = "unknown"


@dataclass(frozen=True)
class ToolStrategy:
    """How one CLI's stdout is read.

    ``parse`` is None for tools without a structured protocol; their stdout
    is shown verbatim. ``post_filter`` runs once over the complete entry list
    of a pass.
    """

    tool_id: str
    label: str
    parse: LineParser | None = None
    post_filter: PostFilter | None = None


STRATEGIES: dict[str, ToolStrategy] = {
    s.tool_id: s for s in (
        ToolStrategy(claude_code.TOOL_ID, "Claude Code", claude_code.parse),
        ToolStrategy(codex.TOOL_ID, "Codex", codex.parse),
        ToolStrategy(cursor_agent.TOOL_ID, "Cursor Agent", cursor_agent.parse,
                     cursor_agent.drop_redundant_results),
        ToolStrategy(opencode.TOOL_ID, "OpenCode", opencode.parse),
        ToolStrategy(gemini.TOOL_ID, "Gemini CLI", gemini.parse),
    )
}

UNKNOWN = ToolStrategy(UNKNOWN_TOOL_ID, "Unknown tool")


def get_strategy(tool_id: str | None) -> ToolStrategy:
    """Strategy for *tool_id*; any unregistered id gets the verbatim fallback."""
    if not tool_id:
        return UNKNOWN
    return STRATEGIES.get(tool_id.strip().lower(), UNKNOWN)


def known_tool_ids() -> list[str]:
    return list(STRATEGIES)
