"""PruneStatsTracker: accumulate pruning activity per session."""

from __future__ import annotations

from dataclasses import replace

from ..types import PruneResult, SessionPruneStats


class PruneStatsTracker:
    """Track prune calls, affected entries, and cost saved for a session."""

    def __init__(self) -> None:
        self._summary = SessionPruneStats()

    def log_result(self, result: PruneResult) -> None:
        """Log a successful prune operation."""
        self._summary.prune_calls += 1
        self._summary.size_saved += result.size_saved
        if result.operation == "discard":
            self._summary.outputs_discarded += len(result.ids)
        elif result.operation == "extract":
            self._summary.outputs_extracted += len(result.ids)
        elif result.operation == "squash":
            self._summary.outputs_squashed += len(result.ids)
            self._summary.squash_groups += 1

    def log_rejection(self, code: str) -> None:
        """Log a prune call that failed validation."""
        self._summary.rejected[code] = self._summary.rejected.get(code, 0) + 1

    def log_nudge(self) -> None:
        self._summary.nudges_emitted += 1

    def get_summary(self) -> SessionPruneStats:
        """Return a copy of the running totals."""
        return replace(self._summary, rejected=dict(self._summary.rejected))
