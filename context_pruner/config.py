"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from .size_metric import SIZE_METRIC_MODES
from .types import (
    DEFAULT_PROTECTED_TOOLS,
    ContextPrunerConfig,
    NudgeConfig,
    PrunabilityConfig,
    ToolsConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = [
    "context-pruner.yaml",
    "context-pruner.yml",
    "context-pruner.json",
]

VALID_CONFIG_KEYS = frozenset({
    "version",
    "size_metric",
    "debug",
    "session_id",
    "prunability",
    "prunability.min_entry_size",
    "prunability.max_age_turns",
    "prunability.supersession_window",
    "nudge",
    "nudge.enabled",
    "nudge.critical_budget",
    "nudge.grace_turns",
    "tools",
    "tools.discard",
    "tools.extract",
    "tools.squash",
    "tools.protected_tools",
    "tools.protected_resource_patterns",
})


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _key_paths(raw: dict[str, Any], prefix: str = "") -> list[str]:
    keys: list[str] = []
    for key, value in raw.items():
        full = f"{prefix}.{key}" if prefix else str(key)
        keys.append(full)
        if isinstance(value, dict):
            keys.extend(_key_paths(value, full))
    return keys


def find_unknown_keys(raw: dict[str, Any]) -> list[str]:
    """Return dotted key paths in *raw* that the loader does not understand."""
    return [k for k in _key_paths(raw) if k not in VALID_CONFIG_KEYS]


def _build_config(raw: dict[str, Any]) -> ContextPrunerConfig:
    """Build a ContextPrunerConfig from a raw dict."""
    unknown = find_unknown_keys(raw)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))

    prun_raw = raw.get("prunability", {}) or {}
    prunability = PrunabilityConfig(
        min_entry_size=prun_raw.get("min_entry_size", 20),
        max_age_turns=prun_raw.get("max_age_turns", 0),
        supersession_window=prun_raw.get("supersession_window", 1),
    )

    nudge_raw = raw.get("nudge", {}) or {}
    nudge = NudgeConfig(
        enabled=nudge_raw.get("enabled", True),
        critical_budget=nudge_raw.get("critical_budget", 60_000),
        grace_turns=nudge_raw.get("grace_turns", 3),
    )

    tools_raw = raw.get("tools", {}) or {}
    tools = ToolsConfig(
        discard=tools_raw.get("discard", True),
        extract=tools_raw.get("extract", True),
        squash=tools_raw.get("squash", True),
        protected_tools=list(tools_raw.get("protected_tools", DEFAULT_PROTECTED_TOOLS)),
        protected_resource_patterns=list(tools_raw.get("protected_resource_patterns", [])),
    )

    config = ContextPrunerConfig(
        version=str(raw.get("version", "0.1")),
        size_metric=raw.get("size_metric", "estimate"),
        debug=raw.get("debug", False),
        prunability=prunability,
        nudge=nudge,
        tools=tools,
    )
    if raw.get("session_id"):
        config.session_id = str(raw["session_id"])
    return config


def default_config_dict() -> dict[str, Any]:
    """Defaults as a plain dict, in the shape load_config accepts."""
    defaults = ContextPrunerConfig()
    return {
        "version": defaults.version,
        "size_metric": defaults.size_metric,
        "debug": defaults.debug,
        "prunability": {
            "min_entry_size": defaults.prunability.min_entry_size,
            "max_age_turns": defaults.prunability.max_age_turns,
            "supersession_window": defaults.prunability.supersession_window,
        },
        "nudge": {
            "enabled": defaults.nudge.enabled,
            "critical_budget": defaults.nudge.critical_budget,
            "grace_turns": defaults.nudge.grace_turns,
        },
        "tools": {
            "discard": defaults.tools.discard,
            "extract": defaults.tools.extract,
            "squash": defaults.tools.squash,
            "protected_tools": list(defaults.tools.protected_tools),
            "protected_resource_patterns": [],
        },
    }


def validate_config(config: ContextPrunerConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    metric = config.size_metric
    if metric not in SIZE_METRIC_MODES and not metric.startswith("callable:"):
        errors.append(
            f"size_metric must be one of {', '.join(SIZE_METRIC_MODES)} "
            f"or callable:module:func (got '{metric}')"
        )

    p = config.prunability
    for name in ("min_entry_size", "max_age_turns", "supersession_window"):
        value = getattr(p, name)
        if not isinstance(value, int) or value < 0:
            errors.append(f"prunability.{name} must be a non-negative integer")

    n = config.nudge
    if not isinstance(n.critical_budget, int) or n.critical_budget <= 0:
        errors.append("nudge.critical_budget must be a positive integer")
    if not isinstance(n.grace_turns, int) or n.grace_turns < 0:
        errors.append("nudge.grace_turns must be a non-negative integer")

    t = config.tools
    if not (t.discard or t.extract or t.squash):
        errors.append("At least one of tools.discard, tools.extract, tools.squash must be enabled")
    if not all(isinstance(name, str) for name in t.protected_tools):
        errors.append("tools.protected_tools must be a list of strings")
    if not all(isinstance(pat, str) for pat in t.protected_resource_patterns):
        errors.append("tools.protected_resource_patterns must be a list of strings")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> ContextPrunerConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
