"""HistoryStore: append-only ledger of turns, tool calls, and tool outputs.

Entries are never deleted. Tool outputs carry a one-way lifecycle status;
squash groups replace contiguous, non-overlapping turn ranges. Callers only
ever receive copies, so the store is the single point of mutation.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field, replace

from ..size_metric import SizeMetric, estimate_tokens
from ..types import (
    ALLOWED_TRANSITIONS,
    CallState,
    EmptyRange,
    HistoryView,
    InvalidTransition,
    OutputStatus,
    RangeOverlap,
    Role,
    SquashGroup,
    ToolCall,
    ToolOutput,
    Turn,
    TurnStateError,
    UnknownEntry,
)

logger = logging.getLogger(__name__)


@dataclass
class _StoreState:
    turns: list[Turn] = field(default_factory=list)
    calls: dict[str, ToolCall] = field(default_factory=dict)
    outputs: dict[str, ToolOutput] = field(default_factory=dict)
    groups: list[SquashGroup] = field(default_factory=list)
    refs: dict[int, str] = field(default_factory=dict)
    next_ref: int = 1


class HistoryStore:
    """In-memory ledger for one conversation session."""

    def __init__(self, size_metric: SizeMetric | None = None) -> None:
        self._size = size_metric or estimate_tokens
        self._state = _StoreState()

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------

    def append_turn(self, role: Role | str = Role.AGENT, text: str = "", *, internal: bool = False) -> Turn:
        """Open a new turn. Only one uncommitted turn may exist at a time."""
        turns = self._state.turns
        if turns and not turns[-1].committed:
            raise TurnStateError(f"turn {turns[-1].index} is still open")
        turn = Turn(index=len(turns) + 1, role=Role(role), text=text, internal=internal)
        turns.append(turn)
        logger.debug("Opened turn %d (%s)", turn.index, turn.role.value)
        return copy.deepcopy(turn)

    def commit_turn(self, index: int) -> Turn:
        turn = self._turn(index)
        turn.committed = True
        return copy.deepcopy(turn)

    def append_tool_call(
        self,
        tool: str,
        tool_input: dict | None = None,
        *,
        call_id: str | None = None,
        resource: str = "",
        internal: bool = False,
    ) -> ToolCall:
        """Record an invocation on the open turn and assign its numeric ref."""
        turn = self._open_turn()
        call_id = call_id or f"call_{uuid.uuid4().hex[:12]}"
        if call_id in self._state.calls:
            raise ValueError(f"duplicate tool call id: {call_id}")
        call = ToolCall(
            id=call_id,
            tool=tool,
            tool_input=copy.deepcopy(tool_input or {}),
            turn_index=turn.index,
            ref=self._state.next_ref,
            resource=resource,
            internal=internal,
        )
        self._state.refs[call.ref] = call_id
        self._state.next_ref += 1
        self._state.calls[call_id] = call
        turn.tool_call_ids.append(call_id)
        return copy.deepcopy(call)

    def append_tool_output(
        self,
        call_id: str,
        content: str | bytes,
        *,
        resource: str | None = None,
    ) -> ToolOutput:
        """Attach the completed result of a pending call."""
        call = self._call(call_id)
        if call.state != CallState.PENDING:
            raise InvalidTransition(f"tool call {call_id} is already {call.state.value}")
        turn = self._turn(call.turn_index)
        if resource:
            call.resource = resource
        output = ToolOutput(
            id=call_id,
            tool=call.tool,
            content=content,
            size=self._size(content),
            created_turn=turn.index,
            last_referenced_turn=turn.index,
            resource=call.resource,
            internal=call.internal,
        )
        call.state = CallState.COMPLETED
        call.result_id = call_id
        self._state.outputs[call_id] = output
        return copy.deepcopy(output)

    def fail_tool_call(self, call_id: str, error: str = "") -> ToolCall:
        call = self._call(call_id)
        if call.state != CallState.PENDING:
            raise InvalidTransition(f"tool call {call_id} is already {call.state.value}")
        call.state = CallState.FAILED
        call.error = error
        return copy.deepcopy(call)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: str) -> ToolOutput:
        output = self._state.outputs.get(entry_id)
        if output is None:
            raise UnknownEntry(f"no tool output with id {entry_id}")
        return copy.deepcopy(output)

    def get_call(self, call_id: str) -> ToolCall:
        return copy.deepcopy(self._call(call_id))

    def get_turn(self, index: int) -> Turn:
        return copy.deepcopy(self._turn(index))

    def resolve_id(self, token: str | int) -> str:
        """Map a numeric ref (or its string form) to a call id.

        Tokens that are already call ids, or unknown, are returned unchanged.
        """
        token = str(token).strip()
        if token in self._state.calls:
            return token
        if token.isdigit():
            return self._state.refs.get(int(token), token)
        return token

    @property
    def last_turn_index(self) -> int:
        return len(self._state.turns)

    @property
    def open_turn_index(self) -> int | None:
        turns = self._state.turns
        if turns and not turns[-1].committed:
            return turns[-1].index
        return None

    def find_turn_containing(
        self, needle: str, *, exclude_tools: frozenset[str] | set[str] = frozenset(),
    ) -> list[int]:
        """Committed, unsquashed turns whose text or live tool content contains *needle*.

        Internal context-info payloads and outputs of *exclude_tools* are not searched.
        """
        hits: list[int] = []
        for turn in self._state.turns:
            if not turn.committed or self._group_for(turn.index) is not None:
                continue
            if needle in turn.text:
                hits.append(turn.index)
                continue
            for cid in turn.tool_call_ids:
                output = self._state.outputs.get(cid)
                if output is None or output.internal or output.tool in exclude_tools:
                    continue
                live = output.live_content
                if isinstance(live, bytes):
                    live = live.decode("utf-8", errors="replace")
                if live and needle in live:
                    hits.append(turn.index)
                    break
        return hits

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def can_transition(self, entry_id: str, new_status: OutputStatus) -> bool:
        output = self._state.outputs.get(entry_id)
        return output is not None and new_status in ALLOWED_TRANSITIONS[output.status]

    def mark_status(
        self,
        entry_id: str,
        new_status: OutputStatus,
        payload: str | None = None,
    ) -> ToolOutput:
        """Move an output along its lifecycle.

        *payload* is the extraction summary for EXTRACTED and the squash group
        id for SQUASHED_AWAY. Raw content is cleared on every transition.
        """
        output = self._state.outputs.get(entry_id)
        if output is None:
            raise UnknownEntry(f"no tool output with id {entry_id}")
        new_status = OutputStatus(new_status)
        if new_status not in ALLOWED_TRANSITIONS[output.status]:
            raise InvalidTransition(
                f"{entry_id}: {output.status.value} -> {new_status.value} is not allowed"
            )
        if new_status == OutputStatus.EXTRACTED:
            if not payload:
                raise InvalidTransition(f"{entry_id}: extraction requires a summary")
            output.summary = payload
        elif new_status == OutputStatus.SQUASHED_AWAY:
            if not payload:
                raise InvalidTransition(f"{entry_id}: squash requires a group id")
            output.summary = None
            output.squash_group_id = payload
        else:
            output.summary = None
        output.content = None
        output.status = new_status
        logger.debug("Entry %s -> %s", entry_id, new_status.value)
        return copy.deepcopy(output)

    def mark_referenced(self, entry_id: str, turn_index: int | None = None) -> None:
        """Record that the agent cited *entry_id*, keeping it hot."""
        output = self._state.outputs.get(entry_id)
        if output is None:
            raise UnknownEntry(f"no tool output with id {entry_id}")
        turn_index = turn_index if turn_index is not None else self.last_turn_index
        output.last_referenced_turn = max(output.last_referenced_turn, turn_index)

    def create_squash_group(
        self,
        lo: int,
        hi: int,
        summary: str,
        *,
        topic: str = "",
        created_turn: int | None = None,
    ) -> SquashGroup:
        if lo > hi:
            raise EmptyRange(f"empty range: {lo} > {hi}")
        for group in self._state.groups:
            if group.overlaps(lo, hi):
                raise RangeOverlap(
                    f"turns {lo}-{hi} overlap squash group {group.id[:8]} ({group.lo}-{group.hi})"
                )
        group = SquashGroup(
            lo=lo,
            hi=hi,
            summary=summary,
            topic=topic,
            created_turn=created_turn if created_turn is not None else self.last_turn_index,
        )
        self._state.groups.append(group)
        self._state.groups.sort(key=lambda g: g.lo)
        logger.info("Created squash group %s over turns %d-%d", group.id[:8], lo, hi)
        return replace(group)

    # ------------------------------------------------------------------
    # Sizes
    # ------------------------------------------------------------------

    def live_cost(self, entry_id: str) -> int:
        output = self._state.outputs.get(entry_id)
        if output is None:
            raise UnknownEntry(f"no tool output with id {entry_id}")
        return self._live_cost(output)

    def _live_cost(self, output: ToolOutput) -> int:
        if output.status == OutputStatus.ACTIVE:
            return output.size
        if output.status == OutputStatus.EXTRACTED:
            return self._size(output.summary)
        return 0

    def active_size(self) -> int:
        """Cost of every Active, non-internal tool output."""
        return sum(
            o.size for o in self._state.outputs.values()
            if o.status == OutputStatus.ACTIVE and not o.internal
        )

    def range_cost(self, lo: int, hi: int) -> int:
        """Cost a squash over [lo, hi] would replace."""
        total = 0
        for turn in self._state.turns[lo - 1:hi]:
            if turn.internal:
                continue
            total += self._size(turn.text)
            for cid in turn.tool_call_ids:
                output = self._state.outputs.get(cid)
                if output is not None and not output.internal:
                    total += self._live_cost(output)
        return total

    def committed_size(self) -> int:
        """Live tool content + unsquashed turn text + squash summaries."""
        total = sum(
            self._live_cost(o) for o in self._state.outputs.values() if not o.internal
        )
        for turn in self._state.turns:
            if not turn.internal and self._group_for(turn.index) is None:
                total += self._size(turn.text)
        total += sum(self._size(g.summary) for g in self._state.groups)
        return total

    # ------------------------------------------------------------------
    # Views & checkpoints
    # ------------------------------------------------------------------

    def snapshot(self) -> HistoryView:
        """Read-only copy of the current state for ranking and rendering."""
        state = copy.deepcopy(self._state)
        return HistoryView(
            turns=tuple(state.turns),
            calls=state.calls,
            outputs=state.outputs,
            groups=tuple(state.groups),
        )

    def checkpoint(self) -> _StoreState:
        return copy.deepcopy(self._state)

    def restore(self, checkpoint: _StoreState) -> None:
        self._state = copy.deepcopy(checkpoint)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _turn(self, index: int) -> Turn:
        if not 1 <= index <= len(self._state.turns):
            raise UnknownEntry(f"no turn with index {index}")
        return self._state.turns[index - 1]

    def _call(self, call_id: str) -> ToolCall:
        call = self._state.calls.get(call_id)
        if call is None:
            raise UnknownEntry(f"no tool call with id {call_id}")
        return call

    def _open_turn(self) -> Turn:
        turns = self._state.turns
        if not turns or turns[-1].committed:
            raise TurnStateError("no open turn")
        return turns[-1]

    def _group_for(self, index: int) -> SquashGroup | None:
        for group in self._state.groups:
            if group.covers(index):
                return group
        return None

    # ------------------------------------------------------------------
    # Range queries
    # ------------------------------------------------------------------

    def overlapping_group(self, lo: int, hi: int) -> SquashGroup | None:
        for group in self._state.groups:
            if group.overlaps(lo, hi):
                return replace(group)
        return None

    def pending_calls_in(self, lo: int, hi: int) -> list[str]:
        return [
            c.id for c in self._state.calls.values()
            if lo <= c.turn_index <= hi and c.state == CallState.PENDING
        ]

    def outputs_in(self, lo: int, hi: int) -> list[str]:
        return [
            cid
            for turn in self._state.turns[lo - 1:hi]
            for cid in turn.tool_call_ids
            if cid in self._state.outputs
        ]
