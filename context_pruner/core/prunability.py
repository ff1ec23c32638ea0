"""PrunabilityCalculator: rank Active tool outputs eligible for discard/extract."""

from __future__ import annotations

import fnmatch
import json
import logging
from typing import Any

from ..types import HistoryView, OutputStatus, PrunabilityConfig, ToolOutput

logger = logging.getLogger(__name__)


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in sorted(value.items()) if v is not None}
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    return value


def resource_signature(tool: str, tool_input: dict | None) -> str:
    """Default logical resource: tool name plus its normalized input.

    Identical calls share a signature, so a repeated read supersedes the
    earlier one even when the tool layer supplies no resource tag.
    """
    if not tool_input:
        return tool
    normalized = _normalize(tool_input)
    return f"{tool}::{json.dumps(normalized, sort_keys=True, default=str)}"


class PrunabilityCalculator:
    """Derive the ordered prunable list from a history view.

    Larger, older, superseded entries surface first. Entries referenced
    within ``supersession_window`` turns are hot and excluded, as are
    entries below ``min_entry_size`` and protected tools/resources.
    """

    def __init__(
        self,
        config: PrunabilityConfig,
        *,
        protected_tools: list[str] | None = None,
        protected_resource_patterns: list[str] | None = None,
    ) -> None:
        self.config = config
        self.protected_tools = frozenset(protected_tools or [])
        self.protected_resource_patterns = list(protected_resource_patterns or [])

    def compute(self, view: HistoryView, current_turn: int) -> list[str]:
        """Return prunable output ids, best candidates first. Deterministic."""
        candidates = [
            o for o in view.outputs.values()
            if o.status == OutputStatus.ACTIVE and not o.internal and not self._is_protected(o)
        ]
        superseded = self._superseded_ids(view)

        ranked: list[tuple[tuple, str]] = []
        for output in candidates:
            if current_turn - output.last_referenced_turn < self.config.supersession_window:
                logger.debug("Skipping hot entry %s", output.id)
                continue
            if output.size < self.config.min_entry_size:
                continue
            age = current_turn - output.created_turn
            if self.config.max_age_turns:
                age = min(age, self.config.max_age_turns)
            key = (
                0 if output.id in superseded else 1,
                -age,
                -output.size,
                output.id,
            )
            ranked.append((key, output.id))

        ranked.sort()
        return [entry_id for _, entry_id in ranked]

    def _is_protected(self, output: ToolOutput) -> bool:
        if output.tool in self.protected_tools:
            return True
        return any(
            fnmatch.fnmatch(output.resource, pattern)
            for pattern in self.protected_resource_patterns
        )

    @staticmethod
    def _superseded_ids(view: HistoryView) -> set[str]:
        """Outputs for which a newer output on the same logical resource exists."""
        newest: dict[str, int] = {}
        for output in view.outputs.values():
            if output.internal or not output.resource:
                continue
            ref = view.calls[output.id].ref
            newest[output.resource] = max(newest.get(output.resource, 0), ref)
        return {
            o.id for o in view.outputs.values()
            if not o.internal and o.resource
            and view.calls[o.id].ref < newest[o.resource]
        }
