"""Render a HistoryView into role/content message dicts."""

from __future__ import annotations

from ..types import CallState, HistoryView, OutputStatus, ToolCall

DISCARDED_PLACEHOLDER = "[output discarded to save context]"
PENDING_PLACEHOLDER = "[result pending]"


def _decode(content: str | bytes | None) -> str:
    if content is None:
        return ""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def _render_call(view: HistoryView, call: ToolCall) -> str:
    if call.state == CallState.PENDING:
        return PENDING_PLACEHOLDER
    if call.state == CallState.FAILED:
        return f"[failed] {call.error}".rstrip()
    output = view.outputs[call.id]
    if output.status == OutputStatus.EXTRACTED:
        return f"[extracted] {output.summary}"
    if output.status == OutputStatus.DISCARDED:
        return DISCARDED_PLACEHOLDER
    return _decode(output.content)


def _latest_internal_id(view: HistoryView) -> str | None:
    internal = [c for c in view.calls.values() if c.internal and c.state == CallState.COMPLETED]
    if not internal:
        return None
    return max(internal, key=lambda c: c.ref).id


def render_messages(view: HistoryView, *, include_internal: bool = False) -> list[dict]:
    """Flatten turns into messages.

    Squash groups collapse into one system message at the start of their
    range. With *include_internal*, only the latest context-info payload is
    kept; older ones are superseded by it.
    """
    latest_internal = _latest_internal_id(view) if include_internal else None
    messages: list[dict] = []
    for turn in view.turns:
        group = view.group_for(turn.index)
        if group is not None:
            if turn.index == group.lo:
                label = f"[squashed turns {group.lo}-{group.hi}"
                label += f": {group.topic}]" if group.topic else "]"
                messages.append({"role": "system", "content": f"{label}\n{group.summary}"})
            continue
        if turn.internal and not include_internal:
            continue
        if turn.text:
            messages.append({"role": turn.role.value, "content": turn.text})
        for cid in turn.tool_call_ids:
            call = view.calls.get(cid)
            if call is None:
                continue
            if call.internal and cid != latest_internal:
                continue
            messages.append({
                "role": "tool",
                "tool_call_id": cid,
                "name": call.tool,
                "content": _render_call(view, call),
            })
    return messages
