"""LiteLLM provider — streamed chat completions normalized to StreamFragment."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import litellm
from loguru import logger

from voidex.core.providers.base import BaseLLMProvider, StreamFragment, ToolCallDelta

# Suppress litellm noise
litellm.suppress_debug_info = True

OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/voidex369/voidex-cli",
    "X-Title": "VoidEx CLI",
}


class LiteLLMProvider(BaseLLMProvider):
    """LiteLLM-backed streaming provider (OpenRouter by default)."""

    async def astream(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        api_key: str | None = None,
        api_base: str | None = None,
    ) -> AsyncIterator[StreamFragment]:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": True,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        if api_key:
            kwargs["api_key"] = api_key
        if api_base:
            kwargs["api_base"] = api_base
        if model.startswith("openrouter/"):
            kwargs["extra_headers"] = OPENROUTER_HEADERS

        logger.debug(f"LLM stream request: model={model}, messages={len(messages)}")
        response = await litellm.acompletion(**kwargs)
        return self._fragments(response)

    @staticmethod
    async def _fragments(response: Any) -> AsyncIterator[StreamFragment]:
        async for chunk in response:
            fragment = to_fragment(chunk)
            if fragment is not None:
                yield fragment


def to_fragment(chunk: Any) -> StreamFragment | None:
    """Convert a litellm stream chunk → StreamFragment (None when empty)."""
    choices = getattr(chunk, "choices", None)
    if not choices:
        return None
    delta = getattr(choices[0], "delta", None)
    if delta is None:
        return None

    calls = []
    for tc in getattr(delta, "tool_calls", None) or []:
        fn = getattr(tc, "function", None)
        calls.append(
            ToolCallDelta(
                index=getattr(tc, "index", None) or 0,
                id=getattr(tc, "id", None),
                name=getattr(fn, "name", None) if fn else None,
                arguments=getattr(fn, "arguments", None) if fn else None,
            )
        )

    content = getattr(delta, "content", None)
    if not content and not calls:
        return None
    return StreamFragment(content=content or None, tool_calls=calls)
