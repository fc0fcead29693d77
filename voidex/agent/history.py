"""History helpers — RAM truncation, window pruning, outbound message building."""

from __future__ import annotations

import json
from typing import Any

from voidex.agent.models import Message

MAX_CONTENT_CHARS = 50_000
MAX_HISTORY_CHARS = 100_000

TRUNCATION_MARKER = "\n\n... [ TRUNCATED AT 50KB FOR RAM STABILITY ] ..."


def truncate_for_ram(content: str | None) -> str | None:
    """Cap a single message body at ``MAX_CONTENT_CHARS`` with a visible marker."""
    if not content or len(content) <= MAX_CONTENT_CHARS:
        return content
    return content[:MAX_CONTENT_CHARS] + TRUNCATION_MARKER


def _weight(msg: Message) -> int:
    calls = [c.model_dump() for c in msg.tool_calls]
    return len(msg.content or "") + len(json.dumps(calls))


def prune_history(
    messages: list[Message], max_chars: int = MAX_HISTORY_CHARS
) -> list[Message]:
    """Keep the newest messages that fit in *max_chars*.

    The message that overflows the budget is kept only when it is the first
    user message (the original task). Tool results whose assistant turn was
    cut away are dropped from the front of the window.
    """
    first_user = next((i for i, m in enumerate(messages) if m.role == "user"), None)
    total = 0
    window: list[Message] = []
    for i in range(len(messages) - 1, -1, -1):
        msg = messages[i]
        weight = _weight(msg)
        if total + weight > max_chars:
            if i == first_user:
                window.insert(0, msg)
            break
        window.insert(0, msg)
        total += weight

    while window and window[0].role == "tool":
        window.pop(0)
    return window


def to_api_messages(
    system_prompt: str,
    messages: list[Message],
    max_chars: int = MAX_HISTORY_CHARS,
) -> list[dict[str, Any]]:
    """Build the provider payload: system prompt + pruned conversation.

    Empty assistant turns are skipped. Tool calls that never got a tool
    response (a denial aborts the rest of a batch) are left out, together
    with tool messages whose call is no longer in the window.
    """
    window = prune_history(messages, max_chars)
    answered = {m.tool_call_id for m in window if m.role == "tool"}
    requested: set[str] = set()

    result: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for msg in window:
        content = (msg.content or "").strip()
        if msg.role == "assistant":
            calls = [c for c in msg.tool_calls if c.id in answered]
            if not content and not calls:
                continue
            entry: dict[str, Any] = {"role": "assistant", "content": content or None}
            if calls:
                entry["tool_calls"] = [c.model_dump() for c in calls]
                requested.update(c.id for c in calls)
            result.append(entry)
        elif msg.role == "tool":
            if msg.tool_call_id not in requested:
                continue
            result.append(
                {
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "name": msg.name,
                    "content": content,
                }
            )
        else:
            result.append({"role": msg.role, "content": content})
    return result
