"""Tests for voidex.agent.stream."""

import pytest

from voidex.agent.cancellation import CancellationToken, RunCancelled
from voidex.agent.history import MAX_CONTENT_CHARS, TRUNCATION_MARKER
from voidex.core.providers.base import StreamFragment, ToolCallDelta
from voidex.agent.stream import StreamAssembler


async def _aiter(items):
    for item in items:
        yield item


class _Clock:
    def __init__(self, step: float):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


@pytest.mark.asyncio
async def test_text_concatenation():
    parts = ["Hel", "lo", ", ", "world"]
    asm = StreamAssembler()
    msg = await asm.consume(_aiter([StreamFragment(content=p) for p in parts]))
    assert msg.role == "assistant"
    assert msg.content == "Hello, world"
    assert msg.tool_calls == []


@pytest.mark.asyncio
async def test_tool_call_arguments_concatenated_per_index():
    fragments = [
        StreamFragment(tool_calls=[ToolCallDelta(index=1, id="b", name="glob", arguments='{"pat')]),
        StreamFragment(tool_calls=[ToolCallDelta(index=0, id="a", name="read_file", arguments="{")]),
        StreamFragment(tool_calls=[ToolCallDelta(index=1, arguments='tern": "*.py"}')]),
        StreamFragment(tool_calls=[ToolCallDelta(index=0, arguments='"path": "x"}')]),
    ]
    msg = await StreamAssembler().consume(_aiter(fragments))

    assert [c.id for c in msg.tool_calls] == ["a", "b"]
    assert msg.tool_calls[0].function.name == "read_file"
    assert msg.tool_calls[0].function.arguments == '{"path": "x"}'
    assert msg.tool_calls[1].function.arguments == '{"pattern": "*.py"}'


@pytest.mark.asyncio
async def test_updates_are_throttled():
    updates = []
    asm = StreamAssembler(flush_interval=1.0, clock=_Clock(step=0.1))
    fragments = [StreamFragment(content=str(i)) for i in range(25)]

    msg = await asm.consume(_aiter(fragments), on_update=lambda m: updates.append(m.content))

    # First immediately, then once per 10 ticks, plus the final flush
    assert updates[0] == "0"
    assert len(updates) < len(fragments)
    assert updates[-1] == msg.content == "".join(str(i) for i in range(25))


@pytest.mark.asyncio
async def test_no_update_for_empty_stream():
    updates = []
    msg = await StreamAssembler().consume(_aiter([]), on_update=updates.append)
    assert updates == []
    assert msg.content == ""


@pytest.mark.asyncio
async def test_content_capped_while_streaming():
    chunk = "y" * 20_000
    fragments = [StreamFragment(content=chunk) for _ in range(5)]
    msg = await StreamAssembler().consume(_aiter(fragments))
    assert msg.content.endswith(TRUNCATION_MARKER)
    assert len(msg.content) == MAX_CONTENT_CHARS + len(TRUNCATION_MARKER)


@pytest.mark.asyncio
async def test_cancel_stops_consumption():
    token = CancellationToken()

    async def source():
        yield StreamFragment(content="a")
        token.cancel()
        yield StreamFragment(content="b")
        yield StreamFragment(content="c")

    asm = StreamAssembler()
    with pytest.raises(RunCancelled):
        await asm.consume(source(), token=token)
    assert "c" not in asm.message.content


def test_feed_reports_change():
    asm = StreamAssembler()
    assert asm.feed(StreamFragment()) is False
    assert asm.feed(StreamFragment(content="x")) is True
