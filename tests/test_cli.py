"""Tests for voidex.cli."""

import asyncio
import contextlib
import os
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from voidex import __version__
from voidex.agent.models import (
    ApprovalReply,
    Decision,
    Message,
    PendingApproval,
    RiskLevel,
)
from voidex.cli import commands
from voidex.cli.commands import app
from voidex.core.config import Config

runner = CliRunner()

_PATCH_CONFIG = "voidex.core.config.loader.load_config"
_PATCH_SESSION = "voidex.agent.session.ChatSession"
_PATCH_EXECUTOR = "voidex.agent.executor.AgentExecutor"


def test_cli_help():
    """--help works and shows command names."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "chat" in result.output
    assert "tools" in result.output


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_chat_single_message():
    """chat -m submits one message and prints the assistant reply."""
    session = MagicMock()
    session.messages = []
    session.submit = AsyncMock(
        return_value=[Message.user("merhaba"), Message(role="assistant", content="Hello from agent")]
    )

    with (
        patch(_PATCH_CONFIG, return_value=Config()),
        patch(_PATCH_EXECUTOR),
        patch(_PATCH_SESSION, return_value=session) as session_cls,
    ):
        result = runner.invoke(app, ["chat", "-m", "merhaba", "--model", "openai/gpt-4o"])

    assert result.exit_code == 0
    assert "Hello from agent" in result.output
    session.submit.assert_awaited_once_with("merhaba")
    assert session_cls.call_args.kwargs["model"] == "openai/gpt-4o"


def test_tools_lists_risk_tiers(tmp_path):
    cfg = Config(assistant={"memory_path": str(tmp_path / "m.md")})
    with patch(_PATCH_CONFIG, return_value=cfg):
        result = runner.invoke(app, ["tools"])

    assert result.exit_code == 0
    assert "run_shell_command" in result.output
    assert "per command" in result.output
    assert "caution" in result.output
    assert "safe" in result.output


# --- Terminal approval channel ---

def _pending(level, code=None):
    return PendingApproval(
        tool_call_id="c1",
        name="run_shell_command",
        arguments={"command": "rm -rf build"},
        risk_level=level,
        reason="Force delete (rm -rf)",
        challenge_code=code,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answer, decision",
    [("y", Decision.ALLOW), ("a", Decision.ALWAYS), ("n", Decision.DENY), ("", Decision.DENY)],
)
async def test_terminal_approval_caution(answer, decision):
    with patch.object(commands, "_ask", AsyncMock(return_value=answer)):
        reply = await commands.terminal_approval(_pending(RiskLevel.CAUTION))
    assert reply == ApprovalReply(decision=decision)


@pytest.mark.asyncio
async def test_terminal_approval_critical_echoes_code():
    with patch.object(commands, "_ask", AsyncMock(return_value="4821")):
        reply = await commands.terminal_approval(_pending(RiskLevel.CRITICAL, code="4821"))
    assert reply.code == "4821"
    assert reply.decision is Decision.ALLOW


# --- Prompt input and Ctrl+C ---

@pytest.fixture
def piped_stdin(monkeypatch):
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "r")
    monkeypatch.setattr(sys, "stdin", reader)
    yield write_fd
    reader.close()
    with contextlib.suppress(OSError):
        os.close(write_fd)


@pytest.mark.asyncio
async def test_cancelled_prompt_leaves_next_line(piped_stdin):
    pending = asyncio.create_task(commands._ask("Allow? "))
    await asyncio.sleep(0.01)
    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending

    os.write(piped_stdin, b"next message\n")
    assert await commands._ask("You: ") == "next message"


@pytest.mark.asyncio
async def test_prompt_eof(piped_stdin):
    os.close(piped_stdin)
    with pytest.raises(EOFError):
        await commands._ask("You: ")


@pytest.mark.asyncio
async def test_interrupt_stops_running_session():
    session = MagicMock()
    session.running = True
    session.stop = AsyncMock(return_value=True)
    idle = MagicMock()

    commands._on_interrupt(session, idle)
    await asyncio.sleep(0)

    session.stop.assert_awaited_once()
    idle.assert_not_called()


def test_interrupt_when_idle_calls_idle():
    session = MagicMock()
    session.running = False
    idle = MagicMock()

    commands._on_interrupt(session, idle)

    idle.assert_called_once()
    session.stop.assert_not_called()
