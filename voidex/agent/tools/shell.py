"""Shell tool — streamed command execution with an output ceiling."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
from pathlib import Path

from langchain_core.tools import tool
from loguru import logger

from voidex.agent.tools.result import ToolResult, emit_output
from voidex.core.config.schema import Config

MAX_OUTPUT = 50_000
READ_CHUNK = 4096

KILL_MARKER = "\n... [STABILITY KILL: OUTPUT TOO LARGE] ..."


def _shell() -> str:
    return "/bin/bash" if Path("/bin/bash").exists() else "/bin/sh"


def _kill(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the whole process group started for the command."""
    if proc.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        os.killpg(proc.pid, signal.SIGKILL)


def make_shell_tools(config: Config) -> list:
    """Create the shell tool."""
    timeout = config.tools.shell.timeout

    @tool
    async def run_shell_command(command: str) -> ToolResult:
        """Execute a bash command on the system and return its combined output."""
        try:
            proc = await asyncio.create_subprocess_exec(
                _shell(),
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            return ToolResult(f"Spawn error: {e}", is_error=True)

        parts: list[str] = []
        size = 0
        killed = False
        stderr_seen = False

        async def pump(stream: asyncio.StreamReader, is_stderr: bool) -> None:
            nonlocal size, killed, stderr_seen
            while chunk := await stream.read(READ_CHUNK):
                text = chunk.decode("utf-8", errors="replace")
                stderr_seen = stderr_seen or is_stderr
                emit_output(text)
                if killed:
                    continue
                parts.append(text)
                size += len(text)
                if size >= MAX_OUTPUT:
                    killed = True
                    logger.warning(f"Output ceiling hit, killing: {command[:80]}")
                    _kill(proc)

        try:
            await asyncio.wait_for(
                asyncio.gather(pump(proc.stdout, False), pump(proc.stderr, True), proc.wait()),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            _kill(proc)
            await proc.wait()
            return ToolResult(f"Command timed out after {timeout}s: {command}", is_error=True)
        except asyncio.CancelledError:
            _kill(proc)
            await proc.wait()
            raise

        output = "".join(parts)
        if killed:
            output = output[:MAX_OUTPUT] + KILL_MARKER
        code = proc.returncode
        if not output.strip():
            output = (
                "Command executed successfully" if code == 0
                else f"Process exited with code {code}"
            )
        return ToolResult(
            output=output.strip(),
            is_error=code != 0 or stderr_seen or killed,
        )

    return [run_shell_command]
