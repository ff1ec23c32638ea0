"""PruneOperations: validated, atomic discard / extract / squash.

Every call validates against the live ContextSnapshot before touching the
store, and every successful call marks that snapshot stale. No further
prune is accepted until the orchestrator binds a recomputed snapshot.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..size_metric import SizeMetric
from ..types import (
    ContextSnapshot,
    EmptyRange,
    ExtractionNotSmaller,
    IncompleteRange,
    NotPrunable,
    OutputStatus,
    PruneResult,
    RangeOverlap,
    StaleSnapshot,
    UnknownEntry,
)
from .history import HistoryStore

logger = logging.getLogger(__name__)


def _as_list(value: str | Sequence[str]) -> list[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


class PruneOperations:
    """The only path by which agent requests mutate the history store."""

    def __init__(self, store: HistoryStore, size_metric: SizeMetric) -> None:
        self._store = store
        self._size = size_metric
        self._snapshot: ContextSnapshot | None = None
        self._stale = False

    # ------------------------------------------------------------------
    # Snapshot binding
    # ------------------------------------------------------------------

    def bind_snapshot(self, snapshot: ContextSnapshot) -> None:
        """Install a freshly computed snapshot as the live one."""
        self._snapshot = snapshot
        self._stale = False

    def restore(self, snapshot: ContextSnapshot | None, stale: bool) -> None:
        """Reinstate snapshot state captured before an aborted turn."""
        self._snapshot = snapshot
        self._stale = stale

    @property
    def snapshot(self) -> ContextSnapshot | None:
        return self._snapshot

    @property
    def is_stale(self) -> bool:
        return self._stale

    def _check_fresh(self) -> None:
        if self._stale:
            raise StaleSnapshot(
                "context changed since the prunable list was computed; "
                "wait for a fresh list before pruning again"
            )

    def _check_prunable(self, ids: list[str]) -> None:
        if self._snapshot is None:
            raise NotPrunable("no prunable list has been issued yet")
        allowed = set(self._snapshot.prunable)
        for entry_id in ids:
            if entry_id not in allowed:
                raise NotPrunable(f"{entry_id} is not in the prunable list")
            if not self._store.can_transition(entry_id, OutputStatus.DISCARDED):
                raise NotPrunable(f"{entry_id} is no longer active")

    def _commit(self, result: PruneResult) -> PruneResult:
        self._stale = True
        logger.info(
            "%s applied to %d entr%s, saved %d",
            result.operation, len(result.ids), "y" if len(result.ids) == 1 else "ies",
            result.size_saved,
        )
        return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def discard(self, ids: str | Sequence[str]) -> PruneResult:
        """Drop raw content irrecoverably; id and original size stay queryable."""
        ids = _as_list(ids)
        self._check_fresh()
        if not ids:
            raise NotPrunable("no ids given")
        self._check_prunable(ids)
        if len(set(ids)) != len(ids):
            raise NotPrunable("duplicate ids in one discard call")

        size_before = self._store.committed_size()
        for entry_id in ids:
            self._store.mark_status(entry_id, OutputStatus.DISCARDED)
        return self._commit(PruneResult(
            operation="discard",
            ids=ids,
            size_before=size_before,
            size_after=self._store.committed_size(),
        ))

    def extract(self, ids: str | Sequence[str], summaries: str | Sequence[str]) -> PruneResult:
        """Replace raw content with a strictly smaller summary."""
        ids = _as_list(ids)
        summaries = _as_list(summaries)
        self._check_fresh()
        if not ids:
            raise NotPrunable("no ids given")
        self._check_prunable(ids)
        if len(set(ids)) != len(ids):
            raise NotPrunable("duplicate ids in one extract call")
        if len(summaries) != len(ids):
            raise ExtractionNotSmaller(
                f"expected {len(ids)} summaries, got {len(summaries)}"
            )
        for entry_id, summary in zip(ids, summaries):
            if not isinstance(summary, str) or not summary.strip():
                raise ExtractionNotSmaller(f"{entry_id}: summary is empty")
            original = self._store.get_entry(entry_id).size
            if self._size(summary) >= original:
                raise ExtractionNotSmaller(
                    f"{entry_id}: summary costs {self._size(summary)}, "
                    f"original costs {original}"
                )

        size_before = self._store.committed_size()
        for entry_id, summary in zip(ids, summaries):
            self._store.mark_status(entry_id, OutputStatus.EXTRACTED, summary)
        return self._commit(PruneResult(
            operation="extract",
            ids=ids,
            size_before=size_before,
            size_after=self._store.committed_size(),
        ))

    def squash(
        self,
        lo: int,
        hi: int,
        summary: str,
        *,
        topic: str = "",
        current_turn: int | None = None,
    ) -> PruneResult:
        """Replace turns [lo, hi] with one summary, clearing every output inside."""
        self._check_fresh()
        if lo > hi:
            raise EmptyRange(f"empty range: {lo} > {hi}")
        last = self._store.last_turn_index
        if lo < 1 or hi > last:
            raise UnknownEntry(f"turn range {lo}-{hi} outside 1-{last}")
        open_turn = self._store.open_turn_index
        if open_turn is not None and hi >= open_turn:
            raise IncompleteRange(f"turn {open_turn} is still in progress")
        overlap = self._store.overlapping_group(lo, hi)
        if overlap is not None:
            raise RangeOverlap(
                f"turns {lo}-{hi} overlap squash group {overlap.id[:8]} ({overlap.lo}-{overlap.hi})"
            )
        pending = self._store.pending_calls_in(lo, hi)
        if pending:
            raise IncompleteRange(
                f"turns {lo}-{hi} have pending tool results: {', '.join(pending)}"
            )
        if not isinstance(summary, str) or not summary.strip():
            raise ExtractionNotSmaller("squash summary is empty")
        replaced = self._store.range_cost(lo, hi)
        if self._size(summary) >= replaced:
            raise ExtractionNotSmaller(
                f"summary costs {self._size(summary)}, turns {lo}-{hi} cost {replaced}"
            )

        size_before = self._store.committed_size()
        group = self._store.create_squash_group(
            lo, hi, summary, topic=topic, created_turn=current_turn,
        )
        affected = self._store.outputs_in(lo, hi)
        for entry_id in affected:
            self._store.mark_status(entry_id, OutputStatus.SQUASHED_AWAY, group.id)
        return self._commit(PruneResult(
            operation="squash",
            ids=affected,
            size_before=size_before,
            size_after=self._store.committed_size(),
            squash_group_id=group.id,
        ))
