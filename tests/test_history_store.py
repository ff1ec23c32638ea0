"""Tests for HistoryStore."""

import pytest

from context_pruner.types import (
    CallState,
    EmptyRange,
    InvalidTransition,
    OutputStatus,
    RangeOverlap,
    Role,
    TurnStateError,
    UnknownEntry,
)


def _turn_with_output(store, text, call_id, content, tool="read", resource=""):
    turn = store.append_turn(Role.AGENT, text)
    store.append_tool_call(tool, {"path": call_id}, call_id=call_id, resource=resource)
    store.append_tool_output(call_id, content)
    store.commit_turn(turn.index)
    return turn


class TestAppends:
    def test_turn_indices_start_at_one(self, store):
        first = store.append_turn(text="hello")
        store.commit_turn(first.index)
        second = store.append_turn(Role.USER, "next")
        assert first.index == 1
        assert second.index == 2
        assert second.role == Role.USER
        assert store.open_turn_index == 2
        assert store.last_turn_index == 2

    def test_only_one_open_turn(self, store):
        store.append_turn()
        with pytest.raises(TurnStateError):
            store.append_turn()

    def test_tool_call_needs_open_turn(self, store):
        with pytest.raises(TurnStateError):
            store.append_tool_call("read")

    def test_refs_are_sequential(self, store):
        store.append_turn()
        a = store.append_tool_call("read", call_id="a")
        b = store.append_tool_call("grep", call_id="b")
        assert (a.ref, b.ref) == (1, 2)
        assert store.resolve_id("2") == "b"
        assert store.resolve_id(1) == "a"
        assert store.resolve_id("a") == "a"
        assert store.resolve_id("77") == "77"

    def test_duplicate_call_id(self, store):
        store.append_turn()
        store.append_tool_call("read", call_id="a")
        with pytest.raises(ValueError):
            store.append_tool_call("read", call_id="a")

    def test_output_records_size_and_turn(self, store):
        _turn_with_output(store, "t", "c1", "x" * 120, resource="file:a")
        entry = store.get_entry("c1")
        assert entry.size == 120
        assert entry.status == OutputStatus.ACTIVE
        assert entry.created_turn == 1
        assert entry.last_referenced_turn == 1
        assert entry.resource == "file:a"
        assert store.get_call("c1").state == CallState.COMPLETED

    def test_output_for_completed_call_rejected(self, store):
        _turn_with_output(store, "t", "c1", "x" * 20)
        with pytest.raises(InvalidTransition):
            store.append_tool_output("c1", "again")

    def test_failed_call_has_no_output(self, store):
        store.append_turn()
        store.append_tool_call("bash", call_id="c1")
        call = store.fail_tool_call("c1", "exit 1")
        assert call.state == CallState.FAILED
        assert call.error == "exit 1"
        with pytest.raises(UnknownEntry):
            store.get_entry("c1")

    def test_returned_containers_are_detached(self, store):
        tool_input = {"path": "a.py", "opts": {"limit": 10}}
        turn = store.append_turn(text="t")
        returned = store.append_tool_call("read", tool_input, call_id="c1")
        store.commit_turn(turn.index)

        store.get_turn(1).tool_call_ids.append("injected")
        store.get_call("c1").tool_input["path"] = "other.py"
        returned.tool_input["opts"]["limit"] = 99
        tool_input["opts"]["limit"] = 50

        assert store.get_turn(1).tool_call_ids == ["c1"]
        assert store.get_call("c1").tool_input == {"path": "a.py", "opts": {"limit": 10}}

    def test_unknown_lookups(self, store):
        with pytest.raises(UnknownEntry):
            store.get_entry("missing")
        with pytest.raises(UnknownEntry):
            store.get_call("missing")
        with pytest.raises(UnknownEntry):
            store.get_turn(1)

    def test_returned_entries_are_copies(self, store):
        _turn_with_output(store, "t", "c1", "x" * 20)
        entry = store.get_entry("c1")
        entry.status = OutputStatus.DISCARDED
        assert store.get_entry("c1").status == OutputStatus.ACTIVE


class TestLifecycle:
    def test_discard_clears_content_keeps_size(self, store):
        _turn_with_output(store, "t", "c1", "x" * 100)
        store.mark_status("c1", OutputStatus.DISCARDED)
        entry = store.get_entry("c1")
        assert entry.content is None
        assert entry.size == 100
        assert store.live_cost("c1") == 0

    def test_extract_keeps_summary(self, store):
        _turn_with_output(store, "t", "c1", "x" * 100)
        store.mark_status("c1", OutputStatus.EXTRACTED, "short")
        entry = store.get_entry("c1")
        assert entry.summary == "short"
        assert entry.content is None
        assert store.live_cost("c1") == 5

    def test_extract_requires_summary(self, store):
        _turn_with_output(store, "t", "c1", "x" * 100)
        with pytest.raises(InvalidTransition):
            store.mark_status("c1", OutputStatus.EXTRACTED)

    @pytest.mark.parametrize("first,second", [
        (OutputStatus.DISCARDED, OutputStatus.EXTRACTED),
        (OutputStatus.EXTRACTED, OutputStatus.DISCARDED),
        (OutputStatus.DISCARDED, OutputStatus.ACTIVE),
    ])
    def test_one_way_transitions(self, store, first, second):
        _turn_with_output(store, "t", "c1", "x" * 100)
        payload = "s" if first == OutputStatus.EXTRACTED else None
        store.mark_status("c1", first, payload)
        assert not store.can_transition("c1", second)
        with pytest.raises(InvalidTransition):
            store.mark_status("c1", second, "s")

    def test_squashed_away_is_terminal(self, store):
        _turn_with_output(store, "t", "c1", "x" * 100)
        store.mark_status("c1", OutputStatus.DISCARDED)
        store.mark_status("c1", OutputStatus.SQUASHED_AWAY, "group-1")
        entry = store.get_entry("c1")
        assert entry.squash_group_id == "group-1"
        for status in OutputStatus:
            assert not store.can_transition("c1", status)

    def test_mark_referenced_only_moves_forward(self, store):
        _turn_with_output(store, "t", "c1", "x" * 100)
        store.mark_referenced("c1", 5)
        store.mark_referenced("c1", 3)
        assert store.get_entry("c1").last_referenced_turn == 5


class TestSquashGroups:
    def test_empty_range(self, store):
        with pytest.raises(EmptyRange):
            store.create_squash_group(3, 2, "s")

    def test_overlap_rejected(self, store):
        for i in range(4):
            _turn_with_output(store, f"turn {i}", f"c{i}", "x" * 30)
        store.create_squash_group(1, 2, "s")
        with pytest.raises(RangeOverlap):
            store.create_squash_group(2, 3, "s")
        store.create_squash_group(3, 4, "s")
        assert store.overlapping_group(4, 4) is not None

    def test_squashed_turns_leave_committed_size(self, store):
        _turn_with_output(store, "a" * 10, "c1", "x" * 100)
        _turn_with_output(store, "b" * 10, "c2", "y" * 100)
        assert store.committed_size() == 220
        assert store.range_cost(1, 1) == 110
        group = store.create_squash_group(1, 1, "sum")
        store.mark_status("c1", OutputStatus.SQUASHED_AWAY, group.id)
        assert store.committed_size() == 110 + 3


class TestQueries:
    def test_active_size_skips_internal(self, store):
        turn = store.append_turn()
        store.append_tool_call("read", call_id="c1")
        store.append_tool_output("c1", "x" * 40)
        store.append_tool_call("context_info", call_id="ci", internal=True)
        store.append_tool_output("ci", "y" * 400)
        store.commit_turn(turn.index)
        assert store.active_size() == 40
        assert store.committed_size() == 40

    def test_find_turn_containing(self, store):
        _turn_with_output(store, "start the refactor", "c1", "alpha")
        _turn_with_output(store, "middle", "c2", "beta gamma")
        assert store.find_turn_containing("refactor") == [1]
        assert store.find_turn_containing("gamma") == [2]
        assert store.find_turn_containing("a") == [1, 2]
        assert store.find_turn_containing("zzz") == []

    def test_find_turn_skips_excluded_tools(self, store):
        _turn_with_output(store, "first", "c1", "needle here")
        _turn_with_output(store, "second", "p1", "needle echoed", tool="squash")
        assert store.find_turn_containing("needle") == [1, 2]
        assert store.find_turn_containing("needle", exclude_tools={"squash"}) == [1]

    def test_find_turn_ignores_open_turn(self, store):
        _turn_with_output(store, "done", "c1", "alpha")
        store.append_turn(text="unique marker")
        assert store.find_turn_containing("unique marker") == []

    def test_pending_calls_in(self, store):
        turn = store.append_turn()
        store.append_tool_call("read", call_id="c1")
        store.commit_turn(turn.index)
        assert store.pending_calls_in(1, 1) == ["c1"]

    def test_snapshot_is_detached(self, store):
        _turn_with_output(store, "t", "c1", "x" * 20)
        view = store.snapshot()
        store.mark_status("c1", OutputStatus.DISCARDED)
        assert view.outputs["c1"].status == OutputStatus.ACTIVE

    def test_checkpoint_restore(self, store):
        _turn_with_output(store, "t", "c1", "x" * 20)
        saved = store.checkpoint()
        store.mark_status("c1", OutputStatus.DISCARDED)
        store.append_turn()
        store.restore(saved)
        assert store.get_entry("c1").status == OutputStatus.ACTIVE
        assert store.open_turn_index is None
        assert store.last_turn_index == 1
