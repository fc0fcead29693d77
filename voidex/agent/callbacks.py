"""Executor callbacks — how a run streams progress to its caller."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from voidex.agent.approval import ApprovalChannel
from voidex.agent.cancellation import CancellationToken
from voidex.agent.models import Decision, Message, PendingApproval


@dataclass
class ExecutorCallbacks:
    """Side-effect hooks of ``AgentExecutor.run``; all optional."""

    on_update_messages: Callable[[list[Message]], None] | None = None
    on_status_update: Callable[[str | None], None] | None = None
    on_live_output: Callable[[str], None] | None = None
    on_need_approval: ApprovalChannel | None = None
    on_tool_whitelisted: Callable[[str], None] | None = None
    on_error: Callable[[str], None] | None = None


async def deny_all(pending: PendingApproval) -> Decision:
    """Approval channel used when the caller provides none."""
    logger.warning(f"No approval channel, denying {pending.name}")
    return Decision.DENY


class Emitter:
    """Dispatches callbacks for one run; goes silent once it is cancelled."""

    def __init__(self, callbacks: ExecutorCallbacks, token: CancellationToken) -> None:
        self._cb = callbacks
        self._token = token

    def messages(self, messages: list[Message]) -> None:
        if self._cb.on_update_messages and not self._token.cancelled:
            self._cb.on_update_messages(list(messages))

    def status(self, text: str | None) -> None:
        if self._cb.on_status_update and not self._token.cancelled:
            self._cb.on_status_update(text)

    def live(self, chunk: str) -> None:
        if self._cb.on_live_output and not self._token.cancelled:
            self._cb.on_live_output(chunk)

    def whitelisted(self, name: str) -> None:
        if self._cb.on_tool_whitelisted and not self._token.cancelled:
            self._cb.on_tool_whitelisted(name)

    def error(self, text: str) -> None:
        if self._cb.on_error and not self._token.cancelled:
            self._cb.on_error(text)
