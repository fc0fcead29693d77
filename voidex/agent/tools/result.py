"""Tool result type and the live-output channel shared by all tools."""

from __future__ import annotations

from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass

OutputCallback = Callable[[str], None]

# Set by ToolRegistry.execute for the duration of one call; kept out of the
# tool signatures so their schemas stay JSON-only.
live_output: ContextVar[OutputCallback | None] = ContextVar("live_output", default=None)


@dataclass
class ToolResult:
    output: str
    is_error: bool = False


def emit_output(chunk: str) -> None:
    """Forward a chunk of streaming output to the current listener, if any."""
    callback = live_output.get()
    if callback is not None:
        callback(chunk)
