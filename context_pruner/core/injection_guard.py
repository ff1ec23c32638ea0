"""InjectionGuard: strip internal bookkeeping from user-visible history.

Pure functions over a HistoryView, no engine dependency. Context-info
payloads and nudges are tagged ``internal`` at creation and never leave
through this filter, whatever their lifecycle status.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from ..types import HistoryView, ToolCall, ToolOutput, Turn

TurnPredicate = Callable[[Turn], bool]


def is_internal(entry: Turn | ToolCall | ToolOutput) -> bool:
    return bool(getattr(entry, "internal", False))


class InjectionGuard:
    """Filter a history view down to what the user may see."""

    def filter(self, view: HistoryView, visible: TurnPredicate | None = None) -> HistoryView:
        turns: list[Turn] = []
        for turn in view.turns:
            if is_internal(turn):
                continue
            if visible is not None and not visible(turn):
                continue
            turns.append(replace(
                turn,
                tool_call_ids=[
                    cid for cid in turn.tool_call_ids
                    if cid in view.calls and not is_internal(view.calls[cid])
                ],
            ))
        kept = {cid for turn in turns for cid in turn.tool_call_ids}
        calls = {cid: view.calls[cid] for cid in kept}
        outputs = {
            oid: o for oid, o in view.outputs.items()
            if oid in kept and not is_internal(o)
        }
        return HistoryView(
            turns=tuple(turns),
            calls=calls,
            outputs=outputs,
            groups=view.groups,
        )
