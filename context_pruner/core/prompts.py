"""Prompt text for the prune tools, nudges, and context-info payloads."""

from __future__ import annotations

PRUNABLE_TOOLS_PREAMBLE = (
    "The following tool outputs are available for pruning. This list does not "
    "mandate immediate action. Consider your current goals before removing "
    "anything you still need; batch prunes rather than removing single tiny outputs."
)

COOLDOWN_NOTICE = (
    "<context-info>\n"
    "Context management was just performed. The list below reflects the current "
    "state; ids that were pruned are gone.\n"
    "</context-info>"
)

_NUDGE_HEADER = (
    "<instruction name=context_management_required>\n"
    "**CONTEXT WARNING:** Your context window is filling with tool outputs.\n\n"
    "**Actions:**\n"
)

_NUDGE_FOOTER = (
    "\n\n**Protocol:** Finish any atomic operation in progress first, then "
    "perform context management.\n"
    "</instruction>"
)

NUDGE_DISCARD = _NUDGE_HEADER + (
    "1. **Task completion:** if a sub-task is done, use `discard` on the outputs it used.\n"
    "2. **Noise:** if a read or command yielded nothing useful, use `discard` on it."
) + _NUDGE_FOOTER

NUDGE_EXTRACT = _NUDGE_HEADER + (
    "1. **Task completion:** if work is done, use `extract` to keep its key findings.\n"
    "2. **Knowledge preservation:** distill large raw outputs you still need with `extract`."
) + _NUDGE_FOOTER

NUDGE_DISCARD_EXTRACT = _NUDGE_HEADER + (
    "1. **Noise:** use `discard` on outputs that yielded no value.\n"
    "2. **Superseded:** use `discard` on outputs replaced by newer ones.\n"
    "3. **Knowledge preservation:** use `extract` to distill large outputs you still need."
) + _NUDGE_FOOTER

NUDGE_SQUASH = _NUDGE_HEADER + (
    "1. **Phase completion:** if a phase is complete, use `squash` to condense its turns "
    "into one summary.\n"
    "2. **Exploration done:** if you explored many files or commands, squash the results "
    "before the next phase."
) + _NUDGE_FOOTER

DISCARD_TOOL_DESCRIPTION = (
    "Discard tool outputs that are no longer needed: noise, wrong files, or outputs "
    "superseded by newer ones. Content is removed irrecoverably. Only ids listed in "
    "the <prunable-tools> list are accepted."
)

EXTRACT_TOOL_DESCRIPTION = (
    "Replace tool outputs with distilled summaries that keep only what you need "
    "(signatures, values, constraints). Each summary must be smaller than the output "
    "it replaces. Only ids listed in the <prunable-tools> list are accepted."
)

SQUASH_TOOL_DESCRIPTION = (
    "Collapse a contiguous range of completed turns into one summary. Address the "
    "range either by turn numbers (lo_turn, hi_turn) or by two text boundaries "
    "(start_string, end_string) that each occur exactly once in the conversation. "
    "The summary must be smaller than what it replaces."
)

# ---------------------------------------------------------------------------
# System prompt, assembled from the enabled tools
# ---------------------------------------------------------------------------

SYSTEM_PROMPT_INTRO = (
    "<instruction name=context_management_protocol>\n"
    "You work in a context-constrained environment and must manage your context "
    "window with the {tools} tool{plural}. After each turn the environment injects a "
    "<prunable-tools> list of the outputs you may prune; it is always current, and "
    "only ids on it are accepted."
)

SYSTEM_PROMPT_DISCARD = (
    "- `discard`: remove outputs you no longer need (finished work, noise, outputs "
    "superseded by newer ones). Nothing is kept."
)

SYSTEM_PROMPT_EXTRACT = (
    "- `extract`: keep a short distillation of an output you still need and drop the "
    "raw content. The distillation must be smaller than the output."
)

SYSTEM_PROMPT_SQUASH = (
    "- `squash`: collapse a finished range of turns into one summary, addressed by "
    "turn numbers or by two unique text boundaries."
)

SYSTEM_PROMPT_CHOOSING = (
    "Ask whether anything in an output must survive: if not, `discard`; if so, "
    "or if unsure, `extract`."
)

SYSTEM_PROMPT_GUIDANCE = (
    "Prune when a task or phase is complete, or when write and edit operations are "
    "done. Do not prune outputs you will need for upcoming edits; re-running a tool "
    "to recover pruned content is a net loss. Batch prunes and prefer high-impact "
    "ones over single tiny outputs.\n"
    "</instruction>"
)

SYSTEM_PROMPT_INJECTED_CONTEXT = (
    "<instruction name=injected_context_handling>\n"
    "The <prunable-tools> list, context-management reminders and prune tool results "
    "are injected by the environment and are invisible to the user. Never mention, "
    "acknowledge or quote them, and do not let them change the tone of your replies. "
    "Process them silently and continue the conversation as if they were not there.\n"
    "</instruction>"
)
