"""CLI: context-pruner init, config validate, replay."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from ..config import CONFIG_FILENAMES, default_config_dict, load_config, validate_config


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def cmd_init(args):
    """Write a config file with every default spelled out."""
    output = Path.cwd() / CONFIG_FILENAMES[0]
    if output.exists() and not args.force:
        print(f"Config file already exists: {output}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    output.write_text(yaml.safe_dump(default_config_dict(), sort_keys=False))
    print(f"Created {output}")
    print()
    print("Next steps:")
    print("  1. Tune prunability / nudge thresholds for your model's window")
    print("  2. Validate config:   context-pruner config validate")


def cmd_config_validate(args):
    """Validate config file."""
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        print("Config validation errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    else:
        print("Config is valid.")
        print(f"  Size metric: {config.size_metric}")
        print(
            f"  Prunability: min_entry_size={config.prunability.min_entry_size}, "
            f"max_age_turns={config.prunability.max_age_turns}, "
            f"supersession_window={config.prunability.supersession_window}"
        )
        print(
            f"  Nudge: enabled={config.nudge.enabled}, "
            f"critical_budget={config.nudge.critical_budget:,}, "
            f"grace_turns={config.nudge.grace_turns}"
        )
        enabled = [n for n in ("discard", "extract", "squash") if getattr(config.tools, n)]
        print(f"  Tools: {', '.join(enabled)}")


def _load_script(path: Path) -> list[dict]:
    text = path.read_text()
    raw = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    if isinstance(raw, dict):
        raw = raw.get("turns", [])
    if not isinstance(raw, list):
        raise ValueError("replay script must be a list of turns or {'turns': [...]}")
    return raw


def cmd_replay(args):
    """Drive an engine from a scripted session and print each context_info."""
    from ..engine import ContextPrunerEngine

    try:
        config = load_config(args.config)
        turns = _load_script(Path(args.script))
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error loading replay: {e}", file=sys.stderr)
        sys.exit(1)

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    engine = ContextPrunerEngine(config=config)

    for step in turns:
        turn = engine.begin_turn(step.get("role", "agent"), step.get("text", ""))
        print(f"=== Turn {turn.index} ===")

        for prune in step.get("prune", []):
            name = prune.get("tool", "")
            result = engine.handle_prune_call(name, prune.get("input", {}))
            print(f"{name}: {result}")

        for scripted in step.get("tool_calls", []):
            call = engine.record_tool_call(
                scripted["tool"],
                scripted.get("input", {}),
                call_id=scripted.get("id"),
                resource=scripted.get("resource"),
            )
            if "output" in scripted:
                engine.record_tool_result(call.id, scripted["output"])
            elif "error" in scripted:
                engine.record_tool_failure(call.id, scripted["error"])

        if step.get("references"):
            engine.mark_referenced(*step["references"])

        if step.get("abort"):
            engine.abort_turn()
            print("(aborted)")
            continue

        info = engine.complete_turn(between_phases=step.get("between_phases", False))
        print(info.text or "(no prunable entries)")
        print()

    stats = engine.get_stats()
    print("=== Session stats ===")
    print(f"Prune calls:       {stats.prune_calls}")
    print(f"Discarded:         {stats.outputs_discarded}")
    print(f"Extracted:         {stats.outputs_extracted}")
    print(f"Squashed:          {stats.outputs_squashed} ({stats.squash_groups} groups)")
    print(f"Size saved:        {stats.size_saved:,}")
    print(f"Nudges emitted:    {stats.nudges_emitted}")
    print(f"Committed size:    {engine.committed_size():,}")
    if stats.rejected:
        rejected = ", ".join(f"{code}={n}" for code, n in sorted(stats.rejected.items()))
        print(f"Rejected:          {rejected}")


def main():
    parser = argparse.ArgumentParser(
        prog="context-pruner",
        description="Context window pruning bookkeeping for LLM agents",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Write a default config file")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing config")

    # replay
    replay_parser = subparsers.add_parser("replay", help="Replay a scripted session")
    replay_parser.add_argument("script", help="JSON or YAML list of turns")

    # config
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _configure_logging(args.verbose)

    if args.command == "init":
        cmd_init(args)
    elif args.command == "replay":
        cmd_replay(args)
    elif args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        else:
            print("Usage: context-pruner config validate")
            sys.exit(1)


if __name__ == "__main__":
    main()
