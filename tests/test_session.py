"""Tests for voidex.agent.session.ChatSession."""

import asyncio

import pytest

from voidex.agent.callbacks import ExecutorCallbacks
from voidex.agent.executor import AgentExecutor
from voidex.agent.models import Decision
from voidex.agent.session import CANCEL_NOTICE, ChatSession
from voidex.core.config import Config
from voidex.core.providers.base import BaseLLMProvider, StreamFragment, ToolCallDelta


async def _aiter(items):
    for item in items:
        yield item


class ScriptedProvider(BaseLLMProvider):
    """Replays turns; ``None`` blocks until the run is cancelled."""

    def __init__(self, *turns):
        self.turns = list(turns)
        self.started = asyncio.Event()

    async def astream(self, messages, model, tools=None, api_key=None, api_base=None):
        turn = self.turns.pop(0)
        if turn is None:
            self.started.set()
            await asyncio.Event().wait()
        return _aiter(turn)


class NoTools:
    def definitions(self):
        return []

    async def execute(self, name, args, on_output=None):
        from voidex.agent.tools import ToolResult

        return ToolResult("written")


@pytest.fixture
def cfg(tmp_path):
    return Config(assistant={"memory_path": str(tmp_path / "m.md"), "stream_flush_interval": 0})


def _session(cfg, provider, **kwargs):
    return ChatSession(AgentExecutor(cfg, provider=provider, tools=NoTools()), "m", **kwargs)


@pytest.mark.asyncio
async def test_submit_appends_history(cfg):
    provider = ScriptedProvider([StreamFragment(content="one")], [StreamFragment(content="two")])
    session = _session(cfg, provider)

    await session.submit("first")
    history = await session.submit("second")

    assert [m.role for m in history] == ["user", "assistant", "user", "assistant"]
    assert history[-1].content == "two"
    assert session.running is False


@pytest.mark.asyncio
async def test_always_persists_across_runs(cfg):
    write = [
        StreamFragment(tool_calls=[ToolCallDelta(index=0, id="c1", name="write_file")]),
        StreamFragment(tool_calls=[ToolCallDelta(index=0, arguments='{"path": "a", "content": "x"}')]),
    ]
    write_again = [
        StreamFragment(tool_calls=[ToolCallDelta(index=0, id="c2", name="write_file")]),
        StreamFragment(tool_calls=[ToolCallDelta(index=0, arguments='{"path": "b", "content": "y"}')]),
    ]
    asked = []

    async def approval(pending):
        asked.append(pending.name)
        return Decision.ALWAYS

    provider = ScriptedProvider(
        write, [StreamFragment(content="ok")], write_again, [StreamFragment(content="ok")]
    )
    session = _session(cfg, provider, callbacks=ExecutorCallbacks(on_need_approval=approval))

    await session.submit("write a")
    assert session.allowed_tools == {"write_file"}
    await session.submit("write b")
    assert asked == ["write_file"]


@pytest.mark.asyncio
async def test_stop_cancels_active_run(cfg):
    provider = ScriptedProvider(None)
    session = _session(cfg, provider)

    task = asyncio.create_task(session.submit("long job"))
    await provider.started.wait()
    assert session.running

    assert await session.stop() is True
    history = await task

    assert session.running is False
    assert [m.role for m in session.messages] == ["user", "system"]
    assert session.messages[-1].content == CANCEL_NOTICE
    assert all(m.role != "assistant" for m in history)


@pytest.mark.asyncio
async def test_stop_without_run(cfg):
    session = _session(cfg, ScriptedProvider())
    assert await session.stop() is False
    assert session.messages == []


@pytest.mark.asyncio
async def test_new_submit_discards_in_flight_run(cfg):
    provider = ScriptedProvider(None, [StreamFragment(content="fresh")])
    session = _session(cfg, provider)

    first = asyncio.create_task(session.submit("old"))
    await provider.started.wait()
    history = await session.submit("new")
    await first

    assert [m.content for m in history] == ["old", "new", "fresh"]


def test_reset(cfg):
    session = _session(cfg, ScriptedProvider())
    session.allowed_tools.add("write_file")
    session.reset()
    assert session.messages == []
    assert session.allowed_tools == set()
