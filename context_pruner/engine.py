"""ContextPrunerEngine: main orchestrator wiring all components together."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Sequence

from .config import load_config
from .core.context_info import build_context_info, system_prompt as build_system_prompt
from .core.history import HistoryStore
from .core.injection_guard import InjectionGuard, TurnPredicate
from .core.nudge import NudgeEngine
from .core.operations import PruneOperations
from .core.prunability import PrunabilityCalculator, resource_signature
from .core.render import render_messages
from .core.stats import PruneStatsTracker
from .core.tools import (
    PRUNE_TOOL_NAMES,
    execute_prune_tool,
    is_prune_tool,
    prune_tool_definitions,
)
from .size_metric import SizeMetric, create_size_metric
from .types import (
    AmbiguousBoundary,
    BoundaryNotFound,
    ContextInfo,
    ContextPrunerConfig,
    ContextSnapshot,
    HistoryView,
    NotPrunable,
    NudgeKind,
    PruneError,
    PruneResult,
    Role,
    SessionPruneStats,
    ToolCall,
    ToolOutput,
    Turn,
    TurnStateError,
)

logger = logging.getLogger(__name__)

CONTEXT_INFO_TOOL = "context_info"


class ContextPrunerEngine:
    """Main orchestrator for one conversation session.

    Usage:
        engine = ContextPrunerEngine(config_path="./context-pruner.yaml")

        engine.begin_turn(text="Reading the auth module")
        engine.record_tool_call("read", {"path": "auth.py"}, call_id="c1")
        engine.record_tool_result("c1", source_text)
        info = engine.complete_turn()        # info.text goes to the model

        # Next turn: the agent may prune ids from info.snapshot.prunable
        engine.begin_turn()
        engine.handle_prune_call("discard", {"ids": ["1"]})
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        config: ContextPrunerConfig | None = None,
        size_metric: SizeMetric | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        self._size_metric = size_metric or create_size_metric(self.config.size_metric)

        self._init_store()
        self._init_calculator()
        self._init_nudge()
        self._init_operations()
        self._guard = InjectionGuard()
        self._stats = PruneStatsTracker()
        self._checkpoint: tuple | None = None
        self._pruned_this_turn = False
        self._last_context_info: ContextInfo | None = None

    def _init_store(self) -> None:
        self._store = HistoryStore(size_metric=self._size_metric)

    def _init_calculator(self) -> None:
        self._calculator = PrunabilityCalculator(
            self.config.prunability,
            protected_tools=self.config.tools.protected_tools,
            protected_resource_patterns=self.config.tools.protected_resource_patterns,
        )

    def _init_nudge(self) -> None:
        tools = self.config.tools
        self._nudge = NudgeEngine(
            self.config.nudge,
            squash_available=tools.squash,
            discard_available=tools.discard or tools.extract,
        )

    def _init_operations(self) -> None:
        self._operations = PruneOperations(self._store, self._size_metric)

    # ------------------------------------------------------------------
    # Turn lifecycle
    # ------------------------------------------------------------------

    def begin_turn(self, role: Role | str = Role.AGENT, text: str = "") -> Turn:
        """Open a turn. Everything until complete_turn is all-or-nothing."""
        if self._store.open_turn_index is not None:
            raise TurnStateError(
                f"turn {self._store.open_turn_index} must complete before a new one begins"
            )
        self._checkpoint = (
            self._store.checkpoint(),
            self._operations.snapshot,
            self._operations.is_stale,
            copy.deepcopy(self._nudge),
            copy.deepcopy(self._stats),
            self._pruned_this_turn,
        )
        turn = self._store.append_turn(role, text)
        logger.debug("Began turn %d", turn.index)
        return turn

    def complete_turn(self, *, between_phases: bool = False) -> ContextInfo:
        """Recompute the prunable list, decide a nudge, append context_info.

        *between_phases* is the orchestrator's signal that the agent has just
        finished a phase of work, which is when a squash nudge may fire.
        """
        index = self._store.open_turn_index
        if index is None:
            raise TurnStateError("no open turn to complete")

        view = self._store.snapshot()
        prunable = self._calculator.compute(view, index)
        active_size = self._store.active_size()
        nudge = self._nudge.evaluate(
            prunable_count=len(prunable),
            active_size=active_size,
            between_phases=between_phases,
        )
        snapshot = ContextSnapshot(
            turn_index=index,
            prunable=tuple(prunable),
            nudge=nudge,
            active_size=active_size,
        )
        text = build_context_info(
            snapshot, view, self.config.tools, cooldown=self._pruned_this_turn,
        )
        call = self._store.append_tool_call(CONTEXT_INFO_TOOL, {}, internal=True)
        self._store.append_tool_output(call.id, text)
        self._store.commit_turn(index)

        self._operations.bind_snapshot(snapshot)
        if nudge != NudgeKind.NONE:
            self._stats.log_nudge()
        self._pruned_this_turn = False
        self._checkpoint = None
        self._last_context_info = ContextInfo(snapshot=snapshot, text=text, call_id=call.id)
        logger.info(
            "Turn %d complete: %d prunable, nudge=%s, active=%d",
            index, len(prunable), nudge.value, active_size,
        )
        return self._last_context_info

    def abort_turn(self) -> None:
        """Drop the open turn and every mutation made during it."""
        if self._checkpoint is None:
            raise TurnStateError("no open turn to abort")
        aborted = self._store.open_turn_index
        store_state, snapshot, stale, nudge, stats, pruned = self._checkpoint
        self._store.restore(store_state)
        self._operations.restore(snapshot, stale)
        self._nudge = nudge
        self._stats = stats
        self._pruned_this_turn = pruned
        self._checkpoint = None
        logger.info("Aborted turn %s", aborted)

    def refresh_snapshot(self) -> ContextSnapshot:
        """Recompute the prunable list mid-turn so further prunes are accepted.

        The nudge decided at the end of the previous turn is carried over;
        nudges are only evaluated once per completed turn.
        """
        index = self.current_turn_index
        previous = self._operations.snapshot
        snapshot = ContextSnapshot(
            turn_index=index,
            prunable=tuple(self._calculator.compute(self._store.snapshot(), index)),
            nudge=previous.nudge if previous else NudgeKind.NONE,
            active_size=self._store.active_size(),
        )
        self._operations.bind_snapshot(snapshot)
        logger.debug("Refreshed snapshot at turn %d: %d prunable", index, len(snapshot.prunable))
        return snapshot

    # ------------------------------------------------------------------
    # Tool-execution layer
    # ------------------------------------------------------------------

    def record_tool_call(
        self,
        tool: str,
        tool_input: dict | None = None,
        *,
        call_id: str | None = None,
        resource: str | None = None,
    ) -> ToolCall:
        """Register an invocation; *resource* defaults to the call signature."""
        return self._store.append_tool_call(
            tool,
            tool_input,
            call_id=call_id,
            resource=resource or resource_signature(tool, tool_input),
        )

    def record_tool_result(
        self,
        call_id: str,
        content: str | bytes,
        *,
        resource: str | None = None,
    ) -> ToolOutput:
        return self._store.append_tool_output(call_id, content, resource=resource)

    def record_tool_failure(self, call_id: str, error: str = "") -> ToolCall:
        return self._store.fail_tool_call(call_id, error)

    def mark_referenced(self, *ids: str) -> None:
        """The agent's reasoning cited these outputs in the current turn."""
        turn = self.current_turn_index
        for token in ids:
            self._store.mark_referenced(self._store.resolve_id(token), turn)

    # ------------------------------------------------------------------
    # Prune operations
    # ------------------------------------------------------------------

    def _apply(self, operation: str, fn, *args, **kwargs) -> PruneResult:
        try:
            if not getattr(self.config.tools, operation):
                raise NotPrunable(f"the {operation} tool is disabled")
            result = fn(*args, **kwargs)
        except PruneError as e:
            self._stats.log_rejection(e.code)
            raise
        self._stats.log_result(result)
        self._nudge.record_prune()
        self._pruned_this_turn = True
        return result

    def _resolve(self, ids: str | Sequence[str]) -> list[str]:
        if isinstance(ids, (str, int)):
            ids = [ids]
        return [self._store.resolve_id(token) for token in ids]

    def discard(self, ids: str | Sequence[str]) -> PruneResult:
        return self._apply("discard", self._operations.discard, self._resolve(ids))

    def extract(self, ids: str | Sequence[str], summaries: str | Sequence[str]) -> PruneResult:
        return self._apply("extract", self._operations.extract, self._resolve(ids), summaries)

    def squash(self, lo: int, hi: int, summary: str, *, topic: str = "") -> PruneResult:
        return self._apply(
            "squash", self._operations.squash, lo, hi, summary,
            topic=topic, current_turn=self.current_turn_index,
        )

    def squash_between(
        self, start_string: str, end_string: str, summary: str, *, topic: str = "",
    ) -> PruneResult:
        """Squash the turns delimited by two unique text boundaries."""
        try:
            lo = self._find_boundary(start_string)
            hi = self._find_boundary(end_string)
        except PruneError as e:
            self._stats.log_rejection(e.code)
            raise
        return self.squash(lo, hi, summary, topic=topic)

    def _find_boundary(self, needle: str) -> int:
        if not needle:
            raise BoundaryNotFound("boundary string is empty")
        hits = self._store.find_turn_containing(needle, exclude_tools=PRUNE_TOOL_NAMES)
        if not hits:
            raise BoundaryNotFound(f"text not found in conversation: {needle[:60]!r}")
        if len(hits) > 1:
            raise AmbiguousBoundary(
                f"text found in {len(hits)} turns ({', '.join(map(str, hits))}); "
                "provide a longer, unique string"
            )
        return hits[0]

    def handle_prune_call(
        self, name: str, tool_input: dict, *, call_id: str | None = None,
    ) -> str:
        """Record an agent prune call on the open turn and return its JSON result."""
        if not is_prune_tool(name):
            raise ValueError(f"not a prune tool: {name}")
        call = self._store.append_tool_call(name, tool_input, call_id=call_id)
        try:
            result = execute_prune_tool(self, name, tool_input)
        except Exception as e:
            self._store.fail_tool_call(call.id, str(e))
            raise
        self._store.append_tool_output(call.id, result)
        return result

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def current_turn_index(self) -> int:
        open_turn = self._store.open_turn_index
        return open_turn if open_turn is not None else self._store.last_turn_index

    @property
    def snapshot(self) -> ContextSnapshot | None:
        """The live ContextSnapshot (None before the first completed turn)."""
        return self._operations.snapshot

    @property
    def snapshot_is_stale(self) -> bool:
        return self._operations.is_stale

    @property
    def last_context_info(self) -> ContextInfo | None:
        return self._last_context_info

    def get_entry(self, entry_id: str | int) -> ToolOutput:
        return self._store.get_entry(self._store.resolve_id(entry_id))

    def get_call(self, call_id: str | int) -> ToolCall:
        return self._store.get_call(self._store.resolve_id(call_id))

    def history(self) -> HistoryView:
        """Full view including internal entries."""
        return self._store.snapshot()

    def visible_history(self, visible: TurnPredicate | None = None) -> HistoryView:
        """View with every internal context-info and nudge entry removed."""
        return self._guard.filter(self._store.snapshot(), visible)

    def model_messages(self) -> list[dict]:
        return render_messages(self._store.snapshot(), include_internal=True)

    def visible_messages(self) -> list[dict]:
        return render_messages(self.visible_history())

    def committed_size(self) -> int:
        return self._store.committed_size()

    def active_size(self) -> int:
        return self._store.active_size()

    def tool_definitions(self) -> list[dict]:
        return prune_tool_definitions(self.config.tools)

    def system_prompt(self) -> str:
        """Standing instructions for the enabled prune tools (empty if none)."""
        return build_system_prompt(self.config.tools)

    def get_stats(self) -> SessionPruneStats:
        return self._stats.get_summary()
