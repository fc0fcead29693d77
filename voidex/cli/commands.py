"""VoidEx CLI — Typer-based command-line interface."""

from __future__ import annotations

import asyncio
import contextlib
import io
import json
import signal
import sys
from collections.abc import Callable, Iterator

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from voidex import __version__
from voidex.agent.approval import CONTINUE_TOOL_NAME
from voidex.agent.models import ApprovalReply, Decision, Message, PendingApproval, RiskLevel

app = typer.Typer(
    name="voidex",
    help="voidex - autonomous terminal agent",
    no_args_is_help=True,
)

console = Console()

_RISK_STYLE = {
    RiskLevel.SAFE: "green",
    RiskLevel.CAUTION: "yellow",
    RiskLevel.CRITICAL: "bold red",
}


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"voidex v{__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=_version_callback, is_eager=True
    ),
) -> None:
    """voidex - autonomous terminal agent."""


# ════════════════════════════════════════════════════════════
# Approval channel (terminal)
# ════════════════════════════════════════════════════════════


async def _read_line(prompt: str) -> str:
    """Read one line of stdin without blocking the loop.

    stdin is only read once it is readable and the caller is still waiting,
    so a cancelled prompt never consumes the user's next line.
    """
    loop = asyncio.get_running_loop()
    try:
        fd = sys.stdin.fileno()
    except (AttributeError, io.UnsupportedOperation):
        return await asyncio.to_thread(console.input, prompt)

    console.print(prompt, end="")
    ready = loop.create_future()

    def on_readable() -> None:
        if not ready.done():
            ready.set_result(None)

    try:
        loop.add_reader(fd, on_readable)
    except NotImplementedError:
        return await asyncio.to_thread(input)
    try:
        await ready
    finally:
        loop.remove_reader(fd)

    line = sys.stdin.readline()
    if not line:
        raise EOFError
    return line.rstrip("\n")


async def _ask(prompt: str) -> str:
    return (await _read_line(prompt)).strip()


async def terminal_approval(pending: PendingApproval) -> ApprovalReply:
    """Ask the human at the terminal to resolve a pending approval."""
    style = _RISK_STYLE[pending.risk_level]
    if pending.name == CONTINUE_TOOL_NAME:
        body = pending.arguments.get("reason", "Continue?")
    else:
        body = json.dumps(pending.arguments, indent=2, ensure_ascii=False)
    title = f"[{style}]{pending.risk_level.value.upper()}[/{style}] {pending.name}"
    if pending.reason:
        title += f": {pending.reason}"
    console.print(Panel(body, title=title, border_style=style))

    if pending.challenge_code is not None:
        console.print(
            f"[bold red]Type the code {pending.challenge_code} to allow, "
            "anything else denies.[/bold red]"
        )
        code = await _ask("[bold red]Code:[/bold red] ")
        return ApprovalReply(decision=Decision.ALLOW, code=code)

    answer = (await _ask("[bold]Allow? [y]es / [a]lways / [n]o:[/bold] ")).lower()
    if answer in ("a", "always"):
        return ApprovalReply(decision=Decision.ALWAYS)
    if answer in ("y", "yes", "allow"):
        return ApprovalReply(decision=Decision.ALLOW)
    return ApprovalReply(decision=Decision.DENY)


# ════════════════════════════════════════════════════════════
# chat — terminal agent
# ════════════════════════════════════════════════════════════


def _render(messages: list[Message]) -> None:
    for msg in messages:
        if msg.role == "assistant" and msg.content:
            console.print(f"\n[bold cyan]voidex:[/bold cyan] {msg.content}\n")
        elif msg.role == "tool":
            first = (msg.content or "").splitlines()[0:1]
            console.print(f"[dim]  ↳ {msg.name}: {first[0][:120] if first else ''}[/dim]")
        elif msg.role == "system":
            console.print(f"[yellow]{msg.content}[/yellow]")


def _build_callbacks():
    from voidex.agent.callbacks import ExecutorCallbacks

    def on_status(text: str | None) -> None:
        if text:
            console.print(f"[dim]… {text}[/dim]")

    def on_live(chunk: str) -> None:
        if chunk:
            console.out(chunk, end="", highlight=False)

    return ExecutorCallbacks(
        on_status_update=on_status,
        on_live_output=on_live,
        on_need_approval=terminal_approval,
        on_tool_whitelisted=lambda name: console.print(
            f"[green]{name} allowed for this session[/green]"
        ),
        on_error=lambda text: console.print(f"[bold red]Error:[/bold red] {text}"),
    )


def _on_interrupt(session, idle: Callable[[], None] | None = None) -> None:
    """Ctrl+C stops the active run; with nothing running it calls *idle*."""
    if session.running:
        asyncio.ensure_future(session.stop())
    elif idle is not None:
        idle()


@contextlib.contextmanager
def _interrupts(session, idle: Callable[[], None] | None = None) -> Iterator[None]:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt, session, idle)
    except NotImplementedError:
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def _send(session, text: str) -> None:
    """Submit one message and print what the run added."""
    start = len(session.messages) + 1
    history = await session.submit(text)
    _render(history[start:])


async def _single(session, text: str) -> None:
    with _interrupts(session):
        await _send(session, text)


async def _interactive(session) -> None:
    prompt: asyncio.Task | None = None

    def leave() -> None:
        if prompt is not None:
            prompt.cancel()

    with _interrupts(session, idle=leave):
        while True:
            prompt = asyncio.create_task(_ask("[bold blue]You:[/bold blue] "))
            try:
                user_input = await prompt
            except asyncio.CancelledError:
                # Ctrl+C at the prompt leaves; an outer cancel propagates
                if asyncio.current_task().cancelling():
                    raise
                console.print("\nBye!")
                break
            except EOFError:
                console.print("\nBye!")
                break
            finally:
                prompt = None

            if not user_input:
                continue
            if user_input.lower() in ("exit", "quit"):
                console.print("Bye!")
                break
            if user_input == "/reset":
                session.reset()
                console.print("[dim]History and allowed tools cleared.[/dim]")
                continue

            await _send(session, user_input)


@app.command()
def chat(
    message: str | None = typer.Option(None, "--message", "-m", help="Single message to send"),
    model: str | None = typer.Option(None, "--model", help="Model identifier"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging to stderr"),
) -> None:
    """Chat with the agent from the terminal."""
    from voidex.agent.executor import AgentExecutor
    from voidex.agent.session import ChatSession
    from voidex.core.config.loader import load_config

    _setup_logging(verbose)
    config = load_config()
    model_name = model or config.assistant.model
    api_key = config.get_api_key(model_name)
    if not api_key:
        console.print(f"[yellow]No API key configured for {model_name}[/yellow]")

    session = ChatSession(
        AgentExecutor(config),
        model=model_name,
        api_key=api_key,
        callbacks=_build_callbacks(),
    )

    if message:
        # Single message mode
        asyncio.run(_single(session, message))
        return

    # Interactive mode
    console.print(
        f"[bold]{config.assistant.name} interactive mode[/bold] "
        "(type 'exit' or 'quit' to leave, Ctrl+C stops a run)\n"
    )

    asyncio.run(_interactive(session))


# ════════════════════════════════════════════════════════════
# tools — registered tools and their risk tier
# ════════════════════════════════════════════════════════════


@app.command()
def tools() -> None:
    """List registered tools with their default risk tier."""
    from voidex.agent.risk import SHELL_TOOLS, classify
    from voidex.agent.tools import make_tools
    from voidex.core.config.loader import load_config

    registry = make_tools(load_config())

    table = Table(title="Tools")
    table.add_column("Group", style="cyan")
    table.add_column("Tool")
    table.add_column("Risk")

    for group, names in registry.get_groups_summary().items():
        for name in names:
            if name in SHELL_TOOLS:
                risk = "[yellow]per command[/yellow]"
            else:
                level = classify(name, {}).level
                risk = f"[{_RISK_STYLE[level]}]{level.value}[/{_RISK_STYLE[level]}]"
            table.add_row(group, name, risk)

    console.print(table)
