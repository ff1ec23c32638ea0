"""Tests for PruneStatsTracker."""

import pytest

from context_pruner.core.stats import PruneStatsTracker
from context_pruner.types import PruneResult


@pytest.fixture
def tracker():
    return PruneStatsTracker()


class TestPruneStatsTracker:
    def test_initial_state(self, tracker):
        summary = tracker.get_summary()
        assert summary.prune_calls == 0
        assert summary.size_saved == 0
        assert summary.rejected == {}

    def test_log_results(self, tracker):
        tracker.log_result(PruneResult("discard", ["a", "b"], size_before=500, size_after=300))
        tracker.log_result(PruneResult("extract", ["c"], size_before=300, size_after=250))
        tracker.log_result(PruneResult("squash", ["d", "e", "f"], 250, 100, squash_group_id="g"))
        summary = tracker.get_summary()
        assert summary.prune_calls == 3
        assert summary.outputs_discarded == 2
        assert summary.outputs_extracted == 1
        assert summary.outputs_squashed == 3
        assert summary.squash_groups == 1
        assert summary.size_saved == 400

    def test_rejections_by_code(self, tracker):
        tracker.log_rejection("not_prunable")
        tracker.log_rejection("not_prunable")
        tracker.log_rejection("stale_snapshot")
        assert tracker.get_summary().rejected == {"not_prunable": 2, "stale_snapshot": 1}

    def test_nudges(self, tracker):
        tracker.log_nudge()
        assert tracker.get_summary().nudges_emitted == 1

    def test_summary_is_a_copy(self, tracker):
        tracker.log_rejection("x")
        summary = tracker.get_summary()
        summary.rejected["x"] = 99
        summary.prune_calls = 50
        assert tracker.get_summary().rejected == {"x": 1}
        assert tracker.get_summary().prune_calls == 0
