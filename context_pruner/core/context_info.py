"""Render the synthetic context_info payload (prunable list plus optional nudge) and the system prompt."""

from __future__ import annotations

from ..types import ContextSnapshot, HistoryView, NudgeKind, ToolCall, ToolsConfig
from .prompts import (
    COOLDOWN_NOTICE,
    NUDGE_DISCARD,
    NUDGE_DISCARD_EXTRACT,
    NUDGE_EXTRACT,
    NUDGE_SQUASH,
    PRUNABLE_TOOLS_PREAMBLE,
    SYSTEM_PROMPT_CHOOSING,
    SYSTEM_PROMPT_DISCARD,
    SYSTEM_PROMPT_EXTRACT,
    SYSTEM_PROMPT_GUIDANCE,
    SYSTEM_PROMPT_INJECTED_CONTEXT,
    SYSTEM_PROMPT_INTRO,
    SYSTEM_PROMPT_SQUASH,
)

# Input keys that best identify what a call touched, in preference order.
PARAMETER_KEYS = (
    "file_path",
    "filePath",
    "path",
    "command",
    "pattern",
    "url",
    "query",
)

_MAX_PARAM_CHARS = 80


def describe_call(call: ToolCall) -> str:
    """Human-readable ``tool, parameter`` label for a prunable-list line."""
    param = ""
    for key in PARAMETER_KEYS:
        value = call.tool_input.get(key)
        if value:
            param = str(value)
            break
    if not param and call.resource and not call.resource.startswith(f"{call.tool}::"):
        param = call.resource
    if len(param) > _MAX_PARAM_CHARS:
        param = param[:_MAX_PARAM_CHARS - 3] + "..."
    return f"{call.tool}, {param}" if param else call.tool


def wrap_prunable_tools(lines: list[str]) -> str:
    if not lines:
        return ""
    body = "\n".join(lines)
    return f"<prunable-tools>\n{PRUNABLE_TOOLS_PREAMBLE}\n{body}\n</prunable-tools>"


def nudge_text(kind: NudgeKind, tools: ToolsConfig) -> str:
    """Nudge template for *kind*, naming only the tools that are enabled."""
    if kind == NudgeKind.SQUASH and tools.squash:
        return NUDGE_SQUASH
    if kind == NudgeKind.DISCARD:
        if tools.discard and tools.extract:
            return NUDGE_DISCARD_EXTRACT
        if tools.discard:
            return NUDGE_DISCARD
        if tools.extract:
            return NUDGE_EXTRACT
    return ""


def build_context_info(
    snapshot: ContextSnapshot,
    view: HistoryView,
    tools: ToolsConfig,
    *,
    cooldown: bool = False,
) -> str:
    """Assemble the payload appended after a completed turn.

    Prunable ids are rendered as their numeric refs. An empty prunable list
    renders no ``<prunable-tools>`` block at all.
    """
    parts: list[str] = []
    if cooldown:
        parts.append(COOLDOWN_NOTICE)

    if tools.discard or tools.extract:
        lines = [
            f"{view.calls[entry_id].ref}: {describe_call(view.calls[entry_id])}"
            for entry_id in snapshot.prunable
        ]
        block = wrap_prunable_tools(lines)
        if block:
            parts.append(block)

    nudge = nudge_text(snapshot.nudge, tools)
    if nudge:
        parts.append(nudge)
    return "\n\n".join(parts)


def system_prompt(tools: ToolsConfig) -> str:
    """Standing instructions naming only the enabled prune tools.

    Returns an empty string when every prune tool is disabled.
    """
    enabled = [
        (name, text)
        for name, enabled_flag, text in (
            ("discard", tools.discard, SYSTEM_PROMPT_DISCARD),
            ("extract", tools.extract, SYSTEM_PROMPT_EXTRACT),
            ("squash", tools.squash, SYSTEM_PROMPT_SQUASH),
        )
        if enabled_flag
    ]
    if not enabled:
        return ""
    names = [f"`{name}`" for name, _ in enabled]
    if len(names) > 1:
        tool_list = ", ".join(names[:-1]) + f" and {names[-1]}"
    else:
        tool_list = names[0]
    parts = [
        SYSTEM_PROMPT_INTRO.format(tools=tool_list, plural="s" if len(names) > 1 else ""),
        "\n".join(text for _, text in enabled),
    ]
    if tools.discard and tools.extract:
        parts.append(SYSTEM_PROMPT_CHOOSING)
    parts.append(SYSTEM_PROMPT_GUIDANCE)
    parts.append(SYSTEM_PROMPT_INJECTED_CONTEXT)
    return "\n\n".join(parts)
