"""Loop detector — repetition heuristics over recent assistant turns.

These are heuristics, not a proof of non-termination. A turn's signature is
its trimmed, lower-cased text plus ``name:arguments`` for every tool call,
with arguments re-serialized from JSON when they parse so that whitespace
and key-order noise do not hide a repeat. A loop is reported when:

- the last three signatures are identical, or
- the last four alternate A-B-A-B, or
- the last four assistant turns are all empty.
"""

from __future__ import annotations

import json

from voidex.agent.models import Message, ToolCall


def _canonical_args(raw: str) -> str:
    try:
        return json.dumps(json.loads(raw or ""), sort_keys=True, separators=(",", ":"))
    except json.JSONDecodeError:
        return raw or ""


def _call_signature(call: ToolCall) -> str:
    return f"{call.function.name}:{_canonical_args(call.function.arguments)}"


def signature(msg: Message) -> str:
    text = (msg.content or "").strip().lower()
    calls = "|".join(_call_signature(c) for c in msg.tool_calls)
    return f"{text}::{calls}"


def is_looping(history: list[Message]) -> bool:
    assistants = [m for m in history if m.role == "assistant"]
    if len(assistants) < 3:
        return False

    sigs = [signature(m) for m in assistants]
    if sigs[-1] == sigs[-2] == sigs[-3]:
        return True

    if len(sigs) >= 4:
        if sigs[-1] == sigs[-3] and sigs[-2] == sigs[-4]:
            return True
        if all(m.is_empty for m in assistants[-4:]):
            return True

    return False
