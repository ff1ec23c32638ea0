"""All dataclasses, enums, errors, and config types for context-pruner."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Role(str, Enum):
    AGENT = "agent"
    USER = "user"
    SYSTEM = "system"


class CallState(str, Enum):
    """Lifecycle of a tool invocation as reported by the tool-execution layer."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class OutputStatus(str, Enum):
    """Lifecycle status of a tool output in the history ledger."""
    ACTIVE = "active"
    EXTRACTED = "extracted"
    DISCARDED = "discarded"
    SQUASHED_AWAY = "squashed_away"


class NudgeKind(str, Enum):
    NONE = "none"
    SQUASH = "squash"
    DISCARD = "discard"


# One-way lifecycle: Extracted/Discarded may only be subsumed by a squash.
ALLOWED_TRANSITIONS: dict[OutputStatus, frozenset[OutputStatus]] = {
    OutputStatus.ACTIVE: frozenset({
        OutputStatus.EXTRACTED, OutputStatus.DISCARDED, OutputStatus.SQUASHED_AWAY,
    }),
    OutputStatus.EXTRACTED: frozenset({OutputStatus.SQUASHED_AWAY}),
    OutputStatus.DISCARDED: frozenset({OutputStatus.SQUASHED_AWAY}),
    OutputStatus.SQUASHED_AWAY: frozenset(),
}


# ---------------------------------------------------------------------------
# History entries
# ---------------------------------------------------------------------------

@dataclass
class Turn:
    """Ordered unit of conversation. Immutable once committed."""
    index: int
    role: Role = Role.AGENT
    text: str = ""
    tool_call_ids: list[str] = field(default_factory=list)
    committed: bool = False
    internal: bool = False  # orchestrator-synthesized, never shown to the user
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ToolCall:
    id: str
    tool: str
    tool_input: dict = field(default_factory=dict)
    turn_index: int = 0
    ref: int = 0              # numeric alias shown in <prunable-tools>, never reused
    resource: str = ""        # logical resource used for supersession detection
    state: CallState = CallState.PENDING
    result_id: str | None = None
    error: str = ""
    internal: bool = False


@dataclass
class ToolOutput:
    """Output of a ToolCall; shares the call's id.

    ``size`` is the cost of the original content and never changes, so it
    doubles as the size-at-discard / size-before-extraction audit value.
    """
    id: str
    tool: str = ""
    content: str | bytes | None = None
    size: int = 0
    status: OutputStatus = OutputStatus.ACTIVE
    created_turn: int = 0
    last_referenced_turn: int = 0
    resource: str = ""
    summary: str | None = None          # present iff status == EXTRACTED
    squash_group_id: str | None = None  # present iff status == SQUASHED_AWAY
    internal: bool = False

    @property
    def live_content(self) -> str | bytes | None:
        """What still occupies the context window for this entry."""
        if self.status == OutputStatus.ACTIVE:
            return self.content
        if self.status == OutputStatus.EXTRACTED:
            return self.summary
        return None


@dataclass
class SquashGroup:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    lo: int = 0
    hi: int = 0
    summary: str = ""
    topic: str = ""
    created_turn: int = 0

    def covers(self, turn_index: int) -> bool:
        return self.lo <= turn_index <= self.hi

    def overlaps(self, lo: int, hi: int) -> bool:
        return self.lo <= hi and lo <= self.hi


@dataclass(frozen=True)
class HistoryView:
    """Read-only copy of the store state, used for ranking and rendering."""
    turns: tuple[Turn, ...] = ()
    calls: dict[str, ToolCall] = field(default_factory=dict)
    outputs: dict[str, ToolOutput] = field(default_factory=dict)
    groups: tuple[SquashGroup, ...] = ()

    def group_for(self, turn_index: int) -> SquashGroup | None:
        for group in self.groups:
            if group.covers(turn_index):
                return group
        return None

    @property
    def last_turn_index(self) -> int:
        return self.turns[-1].index if self.turns else 0


# ---------------------------------------------------------------------------
# Snapshots & results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContextSnapshot:
    """The live prunable list plus the nudge decided for the same turn."""
    turn_index: int
    prunable: tuple[str, ...] = ()
    nudge: NudgeKind = NudgeKind.NONE
    active_size: int = 0
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ContextInfo:
    """Payload of the synthetic context_info call appended after each turn."""
    snapshot: ContextSnapshot
    text: str = ""
    call_id: str = ""


@dataclass
class PruneResult:
    operation: str  # "discard", "extract", "squash"
    ids: list[str] = field(default_factory=list)
    size_before: int = 0
    size_after: int = 0
    squash_group_id: str | None = None

    @property
    def size_saved(self) -> int:
        return max(0, self.size_before - self.size_after)


@dataclass
class SessionPruneStats:
    """Running totals for one conversation session."""
    prune_calls: int = 0
    outputs_discarded: int = 0
    outputs_extracted: int = 0
    outputs_squashed: int = 0
    squash_groups: int = 0
    size_saved: int = 0
    nudges_emitted: int = 0
    rejected: dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PruneError(Exception):
    """Local validation failure; the store is left in its prior state."""
    code = "prune_error"


class UnknownEntry(PruneError):
    code = "unknown_entry"


class InvalidTransition(PruneError):
    code = "invalid_transition"


class NotPrunable(PruneError):
    code = "not_prunable"


class StaleSnapshot(PruneError):
    code = "stale_snapshot"


class ExtractionNotSmaller(PruneError):
    code = "extraction_not_smaller"


class RangeOverlap(PruneError):
    code = "range_overlap"


class EmptyRange(PruneError):
    code = "empty_range"


class IncompleteRange(PruneError):
    code = "incomplete_range"


class BoundaryNotFound(PruneError):
    code = "boundary_not_found"


class AmbiguousBoundary(PruneError):
    code = "ambiguous_boundary"


class TurnStateError(Exception):
    """Orchestrator misuse of the turn lifecycle (not agent-facing)."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_PROTECTED_TOOLS = [
    "discard",
    "extract",
    "squash",
    "context_info",
    "task",
    "todowrite",
    "todoread",
]


@dataclass
class PrunabilityConfig:
    min_entry_size: int = 20
    max_age_turns: int = 0        # clamp for age ranking; 0 = unclamped
    supersession_window: int = 1  # turns an entry stays hot after a reference


@dataclass
class NudgeConfig:
    enabled: bool = True
    critical_budget: int = 60_000
    grace_turns: int = 3


@dataclass
class ToolsConfig:
    discard: bool = True
    extract: bool = True
    squash: bool = True
    protected_tools: list[str] = field(default_factory=lambda: list(DEFAULT_PROTECTED_TOOLS))
    protected_resource_patterns: list[str] = field(default_factory=list)


@dataclass
class ContextPrunerConfig:
    version: str = "0.1"
    size_metric: str = "estimate"
    debug: bool = False
    prunability: PrunabilityConfig = field(default_factory=PrunabilityConfig)
    nudge: NudgeConfig = field(default_factory=NudgeConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
