"""Tests for InjectionGuard and message rendering."""

from context_pruner.core.injection_guard import InjectionGuard, is_internal
from context_pruner.core.render import DISCARDED_PLACEHOLDER, PENDING_PLACEHOLDER, render_messages
from context_pruner.types import OutputStatus, Role


def _populate(store):
    turn = store.append_turn(Role.USER, "please read a.py")
    store.append_tool_call("read", {"path": "a.py"}, call_id="c1")
    store.append_tool_output("c1", "print('a')" * 10)
    store.append_tool_call("context_info", call_id="ci1", internal=True)
    store.append_tool_output("ci1", "<prunable-tools>...</prunable-tools>")
    store.commit_turn(turn.index)

    turn = store.append_turn(Role.SYSTEM, "synthetic reminder", internal=True)
    store.commit_turn(turn.index)

    turn = store.append_turn(Role.AGENT, "running tests")
    store.append_tool_call("bash", {"command": "pytest"}, call_id="c2")
    store.fail_tool_call("c2", "exit 2")
    store.append_tool_call("bash", {"command": "sleep"}, call_id="c3")
    store.append_tool_call("context_info", call_id="ci2", internal=True)
    store.append_tool_output("ci2", "latest info")
    store.commit_turn(turn.index)
    return store


class TestInjectionGuard:
    def test_internal_entries_removed(self, store):
        view = InjectionGuard().filter(_populate(store).snapshot())
        assert [t.index for t in view.turns] == [1, 3]
        assert set(view.calls) == {"c1", "c2", "c3"}
        assert set(view.outputs) == {"c1"}
        for turn in view.turns:
            assert "ci1" not in turn.tool_call_ids
            assert "ci2" not in turn.tool_call_ids

    def test_internal_removed_whatever_status(self, store):
        _populate(store)
        group = store.create_squash_group(1, 1, "s")
        store.mark_status("ci1", OutputStatus.SQUASHED_AWAY, group.id)
        view = InjectionGuard().filter(store.snapshot())
        assert not any(is_internal(o) for o in view.outputs.values())

    def test_visible_predicate(self, store):
        view = InjectionGuard().filter(
            _populate(store).snapshot(), lambda t: t.role == Role.AGENT,
        )
        assert [t.index for t in view.turns] == [3]
        assert "c1" not in view.calls

    def test_source_view_untouched(self, store):
        full = _populate(store).snapshot()
        InjectionGuard().filter(full)
        assert "ci1" in full.turns[0].tool_call_ids


class TestRender:
    def test_visible_rendering(self, store):
        view = InjectionGuard().filter(_populate(store).snapshot())
        messages = render_messages(view)
        assert messages[0] == {"role": "user", "content": "please read a.py"}
        assert messages[1]["name"] == "read"
        assert messages[1]["content"] == "print('a')" * 10
        contents = [m["content"] for m in messages]
        assert "[failed] exit 2" in contents
        assert PENDING_PLACEHOLDER in contents
        assert "synthetic reminder" not in contents

    def test_latest_internal_only(self, store):
        messages = render_messages(_populate(store).snapshot(), include_internal=True)
        internal = [m for m in messages if m.get("name") == "context_info"]
        assert [m["tool_call_id"] for m in internal] == ["ci2"]
        assert any(m["content"] == "synthetic reminder" for m in messages)

    def test_pruned_placeholders(self, store):
        _populate(store)
        store.mark_status("c1", OutputStatus.DISCARDED)
        messages = render_messages(store.snapshot())
        assert any(m["content"] == DISCARDED_PLACEHOLDER for m in messages)

    def test_extracted_summary(self, store):
        _populate(store)
        store.mark_status("c1", OutputStatus.EXTRACTED, "prints a")
        messages = render_messages(store.snapshot())
        assert any(m["content"] == "[extracted] prints a" for m in messages)

    def test_squash_group_collapses_range(self, store):
        _populate(store)
        store.create_squash_group(1, 2, "read a.py", topic="setup")
        messages = render_messages(store.snapshot())
        assert messages[0] == {"role": "system", "content": "[squashed turns 1-2: setup]\nread a.py"}
        assert messages[1] == {"role": "agent", "content": "running tests"}
