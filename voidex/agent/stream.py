"""Stream assembler — builds one assistant message from response fragments."""

from __future__ import annotations

import time
from collections.abc import AsyncIterable, Callable

from voidex.agent.cancellation import CancellationToken
from voidex.agent.history import MAX_CONTENT_CHARS, truncate_for_ram
from voidex.agent.models import Message, ToolCall, new_id
from voidex.core.providers.base import StreamFragment, ToolCallDelta


class StreamAssembler:
    """Accumulates text and tool-call deltas into ``self.message``.

    Text is capped at ``MAX_CONTENT_CHARS`` while it streams in. Tool-call
    deltas are buffered per call index and only turned into the ordered
    ``tool_calls`` list by ``finalize``.

    Parameters
    ----------
    flush_interval : float
        Minimum seconds between two intermediate ``on_update`` calls.
    clock : Callable[[], float]
        Monotonic time source.
    """

    def __init__(
        self,
        flush_interval: float = 0.15,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.message = Message(id=new_id("assistant"), role="assistant", content="")
        self.flush_interval = flush_interval
        self._clock = clock
        self._calls: dict[int, ToolCall] = {}
        self._truncated = False

    def feed(self, fragment: StreamFragment) -> bool:
        """Apply one fragment. Returns True when the message changed."""
        changed = False
        if fragment.content:
            self._append_text(fragment.content)
            changed = True
        for delta in fragment.tool_calls:
            self._merge(delta)
            changed = True
        return changed

    def finalize(self) -> Message:
        self.message.tool_calls = [self._calls[i] for i in sorted(self._calls)]
        return self.message

    async def consume(
        self,
        fragments: AsyncIterable[StreamFragment],
        on_update: Callable[[Message], None] | None = None,
        token: CancellationToken | None = None,
    ) -> Message:
        """Drain *fragments*, reporting progress at most once per interval.

        The first change is reported immediately; the final message is
        always reported once the stream ends.
        """
        source = token.iterate(fragments) if token is not None else fragments
        last_flush: float | None = None
        async for fragment in source:
            if not self.feed(fragment) or on_update is None:
                continue
            now = self._clock()
            if last_flush is None or now - last_flush >= self.flush_interval:
                on_update(self.message)
                last_flush = now

        message = self.finalize()
        if on_update is not None and last_flush is not None:
            on_update(message)
        return message

    def _append_text(self, text: str) -> None:
        if self._truncated:
            return
        content = (self.message.content or "") + text
        if len(content) > MAX_CONTENT_CHARS:
            content = truncate_for_ram(content)
            self._truncated = True
        self.message.content = content

    def _merge(self, delta: ToolCallDelta) -> None:
        call = self._calls.setdefault(delta.index, ToolCall())
        if delta.id:
            call.id = delta.id
        if delta.name:
            call.function.name = delta.name
        if delta.arguments:
            call.function.arguments += delta.arguments
