"""Base LLM provider — streaming transport interface."""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCallDelta:
    """Partial tool call keyed by its zero-based position in the turn."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


@dataclass
class StreamFragment:
    """One incremental piece of an assistant response."""

    content: str | None = None
    tool_calls: list[ToolCallDelta] = field(default_factory=list)


class BaseLLMProvider(abc.ABC):
    """Abstract base for streaming chat providers."""

    @abc.abstractmethod
    async def astream(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        api_key: str | None = None,
        api_base: str | None = None,
    ) -> AsyncIterator[StreamFragment]:
        """Open a streamed chat completion.

        Awaiting this call performs the request (and raises on transport
        errors); the returned iterator yields fragments lazily.
        """
        ...
