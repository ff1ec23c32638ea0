"""context-pruner: bookkeeping and policy for pruning an LLM agent's context window."""

from .config import load_config
from .engine import ContextPrunerEngine
from .types import (
    ContextInfo,
    ContextPrunerConfig,
    ContextSnapshot,
    NudgeKind,
    OutputStatus,
    PruneError,
    PruneResult,
)

__version__ = "0.1.0"

__all__ = [
    "ContextPrunerEngine",
    "load_config",
    "ContextInfo",
    "ContextPrunerConfig",
    "ContextSnapshot",
    "NudgeKind",
    "OutputStatus",
    "PruneError",
    "PruneResult",
]
