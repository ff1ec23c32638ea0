"""NudgeEngine: rule-based reminders to prune, with an anti-spam guard."""

from __future__ import annotations

import logging

from ..types import NudgeConfig, NudgeKind

logger = logging.getLogger(__name__)


class NudgeEngine:
    """Decide once per completed turn whether to remind the agent to prune.

    - Active cost above ``critical_budget`` while between phases: squash
    - Non-empty prunable list and ``grace_turns`` without a prune: discard
    - Otherwise: none

    A kind equal to the previous turn's nudge is never emitted twice in a row.
    """

    def __init__(
        self,
        config: NudgeConfig,
        *,
        squash_available: bool = True,
        discard_available: bool = True,
    ) -> None:
        self.config = config
        self.squash_available = squash_available
        self.discard_available = discard_available
        self.turns_since_last_nudge = 0
        self.turns_since_last_prune = 0
        self.last_nudge = NudgeKind.NONE
        self._pruned_since_evaluate = False

    def record_prune(self) -> None:
        """A prune operation succeeded since the last evaluation."""
        self.turns_since_last_prune = 0
        self._pruned_since_evaluate = True

    def evaluate(
        self,
        *,
        prunable_count: int,
        active_size: int,
        between_phases: bool = False,
    ) -> NudgeKind:
        if self._pruned_since_evaluate:
            self._pruned_since_evaluate = False
        else:
            self.turns_since_last_prune += 1

        candidates: list[NudgeKind] = []
        if self.config.enabled:
            if (
                self.squash_available
                and between_phases
                and active_size > self.config.critical_budget
            ):
                candidates.append(NudgeKind.SQUASH)
            if (
                self.discard_available
                and prunable_count > 0
                and self.turns_since_last_prune >= self.config.grace_turns
            ):
                candidates.append(NudgeKind.DISCARD)

        decision = NudgeKind.NONE
        for kind in candidates:
            if kind == self.last_nudge:
                logger.debug("Suppressing repeated %s nudge", kind.value)
                continue
            decision = kind
            break

        if decision == NudgeKind.NONE:
            self.turns_since_last_nudge += 1
        else:
            self.turns_since_last_nudge = 0
            logger.info(
                "Emitting %s nudge (active=%d, prunable=%d, since_prune=%d)",
                decision.value, active_size, prunable_count, self.turns_since_last_prune,
            )
        self.last_nudge = decision
        return decision
