"""Shared fixtures for context-pruner tests."""

from __future__ import annotations

import pytest

from context_pruner.config import load_config
from context_pruner.core.history import HistoryStore
from context_pruner.engine import ContextPrunerEngine
from context_pruner.size_metric import byte_length
from context_pruner.types import ContextInfo, ContextPrunerConfig


@pytest.fixture
def sample_config() -> ContextPrunerConfig:
    """Byte-sized metric and small thresholds so tests can reason in bytes."""
    return load_config(config_dict={
        "size_metric": "bytes",
        "prunability": {
            "min_entry_size": 10,
            "max_age_turns": 0,
            "supersession_window": 1,
        },
        "nudge": {
            "enabled": True,
            "critical_budget": 1000,
            "grace_turns": 2,
        },
    })


@pytest.fixture
def engine(sample_config) -> ContextPrunerEngine:
    return ContextPrunerEngine(config=sample_config)


@pytest.fixture
def store() -> HistoryStore:
    return HistoryStore(size_metric=byte_length)


@pytest.fixture
def run_turn():
    """Return a helper that plays one complete turn against an engine.

    ``calls`` is a list of ``(call_id, tool, tool_input, output)`` tuples.
    """
    def _run(
        engine: ContextPrunerEngine,
        text: str = "",
        calls=(),
        *,
        between_phases: bool = False,
    ) -> ContextInfo:
        engine.begin_turn(text=text)
        for call_id, tool, tool_input, output in calls:
            engine.record_tool_call(tool, tool_input, call_id=call_id)
            engine.record_tool_result(call_id, output)
        return engine.complete_turn(between_phases=between_phases)

    return _run
