"""Tests for prune tool definitions and dispatch."""

import json

import pytest

from context_pruner.core.tools import (
    PRUNE_TOOL_NAMES,
    execute_prune_tool,
    is_prune_tool,
    prune_tool_definitions,
)
from context_pruner.types import ToolsConfig


def test_definitions_follow_config():
    names = [t["name"] for t in prune_tool_definitions(ToolsConfig())]
    assert names == ["discard", "extract", "squash"]
    names = [t["name"] for t in prune_tool_definitions(ToolsConfig(extract=False, squash=False))]
    assert names == ["discard"]


def test_definitions_have_schemas():
    for tool in prune_tool_definitions(ToolsConfig()):
        assert tool["description"]
        assert tool["input_schema"]["type"] == "object"
        assert tool["input_schema"]["required"]


def test_is_prune_tool():
    for name in PRUNE_TOOL_NAMES:
        assert is_prune_tool(name)
    assert not is_prune_tool("read")
    assert not is_prune_tool("context_info")


class TestExecute:
    def _prepared(self, engine, run_turn):
        run_turn(engine, "t1", [("c1", "read", {"path": "a.py"}, "x" * 100)])
        run_turn(engine, "t2")
        engine.begin_turn(text="t3")
        return engine

    def test_discard(self, engine, run_turn):
        engine = self._prepared(engine, run_turn)
        result = json.loads(execute_prune_tool(engine, "discard", {"ids": ["c1"]}))
        assert result["size_saved"] == 100
        assert "is_error" not in result

    def test_extract_uses_distillation(self, engine, run_turn):
        engine = self._prepared(engine, run_turn)
        result = json.loads(execute_prune_tool(
            engine, "extract", {"ids": ["c1"], "distillation": ["a.py: constants only"]},
        ))
        assert result["operation"] == "extract"
        assert result["size_saved"] == 100 - len("a.py: constants only")

    def test_extract_too_large(self, engine, run_turn):
        engine = self._prepared(engine, run_turn)
        result = json.loads(execute_prune_tool(
            engine, "extract", {"ids": ["c1"], "distillation": ["y" * 150]},
        ))
        assert result["is_error"] is True
        assert result["error"] == "extraction_not_smaller"

    def test_squash_by_boundaries(self, engine, run_turn):
        run_turn(engine, "alpha start", [("c1", "read", {"path": "a"}, "x" * 200)])
        run_turn(engine, "omega end", [("c2", "read", {"path": "b"}, "x" * 200)])
        engine.begin_turn(text="t3")
        result = json.loads(execute_prune_tool(engine, "squash", {
            "start_string": "alpha start",
            "end_string": "omega end",
            "summary": "read a and b",
        }))
        assert result["operation"] == "squash"

    def test_squash_bad_turn_number(self, engine, run_turn):
        engine = self._prepared(engine, run_turn)
        result = json.loads(execute_prune_tool(
            engine, "squash", {"lo_turn": "one", "hi_turn": 2, "summary": "s"},
        ))
        assert result["is_error"] is True
        assert result["error"] == "invalid_input"

    @pytest.mark.parametrize("name,tool_input", [
        ("extract", {"ids": ["c1"], "distillation": 5}),
        ("extract", {"ids": ["c1"], "distillation": [None]}),
        ("squash", {"lo_turn": 1, "hi_turn": 1, "summary": ["not", "text"]}),
        ("discard", ["c1"]),
    ])
    def test_malformed_input(self, engine, run_turn, name, tool_input):
        engine = self._prepared(engine, run_turn)
        result = json.loads(execute_prune_tool(engine, name, tool_input))
        assert result["is_error"] is True
        assert result["error"] == "invalid_input"
        assert engine.get_stats().prune_calls == 0

    def test_unknown_tool(self, engine):
        result = json.loads(execute_prune_tool(engine, "shred", {}))
        assert result["error"] == "invalid_input"
