"""Prune tool catalogue and dispatch: discard, extract, squash.

Tool definitions use the Anthropic tool format; callers convert as needed.
Dispatch never raises to the session: validation failures come back as
error tool results the agent can correct and reissue.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from ..types import PruneError, PruneResult, ToolsConfig
from .prompts import (
    DISCARD_TOOL_DESCRIPTION,
    EXTRACT_TOOL_DESCRIPTION,
    SQUASH_TOOL_DESCRIPTION,
)

if TYPE_CHECKING:
    from ..engine import ContextPrunerEngine

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tool catalogue
# ---------------------------------------------------------------------------

PRUNE_TOOL_NAMES: frozenset[str] = frozenset({
    "discard",
    "extract",
    "squash",
})

_IDS_SCHEMA = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Numeric ids from the <prunable-tools> list.",
}


def prune_tool_definitions(config: ToolsConfig) -> list[dict]:
    """Return definitions for the prune tools enabled in *config*."""
    tools: list[dict] = []
    if config.discard:
        tools.append({
            "name": "discard",
            "description": DISCARD_TOOL_DESCRIPTION,
            "input_schema": {
                "type": "object",
                "properties": {"ids": _IDS_SCHEMA},
                "required": ["ids"],
            },
        })
    if config.extract:
        tools.append({
            "name": "extract",
            "description": EXTRACT_TOOL_DESCRIPTION,
            "input_schema": {
                "type": "object",
                "properties": {
                    "ids": _IDS_SCHEMA,
                    "distillation": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "One summary per id, in the same order.",
                    },
                },
                "required": ["ids", "distillation"],
            },
        })
    if config.squash:
        tools.append({
            "name": "squash",
            "description": SQUASH_TOOL_DESCRIPTION,
            "input_schema": {
                "type": "object",
                "properties": {
                    "lo_turn": {"type": "integer", "description": "First turn to squash."},
                    "hi_turn": {"type": "integer", "description": "Last turn to squash (inclusive)."},
                    "start_string": {
                        "type": "string",
                        "description": "Unique text marking the first turn of the range.",
                    },
                    "end_string": {
                        "type": "string",
                        "description": "Unique text marking the last turn of the range.",
                    },
                    "topic": {"type": "string", "description": "3-5 word label."},
                    "summary": {"type": "string", "description": "Replacement text."},
                },
                "required": ["summary"],
            },
        })
    return tools


def is_prune_tool(name: str) -> bool:
    """Return True if *name* is a prune tool."""
    return name in PRUNE_TOOL_NAMES


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def _result_payload(result: PruneResult) -> dict:
    payload = {
        "operation": result.operation,
        "ids": result.ids,
        "size_before": result.size_before,
        "size_after": result.size_after,
        "size_saved": result.size_saved,
    }
    if result.squash_group_id:
        payload["squash_group_id"] = result.squash_group_id
    return payload


def _text(value, field: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string, got {type(value).__name__}")
    return value


def _run(engine: ContextPrunerEngine, name: str, tool_input: dict) -> PruneResult:
    if not isinstance(tool_input, dict):
        raise TypeError("tool input must be an object")
    if name == "discard":
        return engine.discard(tool_input.get("ids", []))
    if name == "extract":
        distillation = tool_input.get("distillation", [])
        if isinstance(distillation, str):
            distillation = [distillation]
        if not isinstance(distillation, list):
            raise TypeError("distillation must be a list of strings")
        return engine.extract(
            tool_input.get("ids", []),
            [_text(s, "distillation entry") for s in distillation],
        )
    if name == "squash":
        summary = _text(tool_input.get("summary", ""), "summary")
        topic = _text(tool_input.get("topic", ""), "topic")
        if tool_input.get("start_string") or tool_input.get("end_string"):
            return engine.squash_between(
                tool_input.get("start_string", ""),
                tool_input.get("end_string", ""),
                summary,
                topic=topic,
            )
        return engine.squash(
            int(tool_input.get("lo_turn", 0)),
            int(tool_input.get("hi_turn", 0)),
            summary,
            topic=topic,
        )
    raise ValueError(f"unknown prune tool: {name}")


def execute_prune_tool(
    engine: ContextPrunerEngine, name: str, tool_input: dict,
) -> str:
    """Execute a prune tool and return a JSON result string."""
    try:
        return json.dumps(_result_payload(_run(engine, name, tool_input)))
    except PruneError as e:
        logger.warning("Prune tool %s rejected (%s): %s", name, e.code, e)
        return json.dumps({"is_error": True, "error": e.code, "content": str(e)})
    except (TypeError, ValueError) as e:
        logger.warning("Prune tool %s got malformed input: %s", name, e)
        return json.dumps({"is_error": True, "error": "invalid_input", "content": str(e)})
