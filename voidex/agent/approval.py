"""Approval gate — human confirmation for risky tool calls.

Caution-tier calls are offered allow / always / deny. Critical-tier calls get
a random numeric challenge code; the human channel must echo it back verbatim
or the call is denied. ``always`` is never honoured for critical calls.
"""

from __future__ import annotations

import secrets
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Union

from loguru import logger

from voidex.agent.models import (
    ApprovalReply,
    Decision,
    PendingApproval,
    RiskAssessment,
    RiskLevel,
    new_id,
)

ApprovalChannel = Callable[
    [PendingApproval], Awaitable[Union[ApprovalReply, Decision, str]]
]

CONTINUE_TOOL_NAME = "CONTINUE_LONG_TASK"


def generate_challenge_code() -> str:
    """Four-digit code, 1000-9999."""
    return str(1000 + secrets.randbelow(9000))


def _to_reply(raw: ApprovalReply | Decision | str) -> ApprovalReply:
    if isinstance(raw, ApprovalReply):
        return raw
    return ApprovalReply(decision=Decision(raw))


class ApprovalGate:
    """Decides whether a tool call may proceed; owns the run's AllowList.

    Parameters
    ----------
    channel : ApprovalChannel
        Async human-facing collaborator that resolves a ``PendingApproval``.
    allowed_tools : Iterable[str]
        Tool names already pre-approved for this session.
    on_whitelisted : Callable[[str], None], optional
        Notified when an ``always`` decision grows the AllowList.
    """

    def __init__(
        self,
        channel: ApprovalChannel,
        allowed_tools: Iterable[str] = (),
        on_whitelisted: Callable[[str], None] | None = None,
    ) -> None:
        self._channel = channel
        self._on_whitelisted = on_whitelisted
        self.allowed_tools: set[str] = set(allowed_tools)

    def needs_approval(self, name: str, risk: RiskAssessment) -> bool:
        if risk.level is RiskLevel.CRITICAL:
            return True
        return name not in self.allowed_tools and risk.level is not RiskLevel.SAFE

    async def request(
        self,
        tool_call_id: str,
        name: str,
        arguments: dict[str, Any],
        risk: RiskAssessment,
    ) -> Decision:
        """Ask the human channel and return the effective decision."""
        pending = PendingApproval(
            tool_call_id=tool_call_id,
            name=name,
            arguments=arguments,
            risk_level=risk.level,
            reason=risk.reason,
            challenge_code=(
                generate_challenge_code() if risk.level is RiskLevel.CRITICAL else None
            ),
        )
        reply = _to_reply(await self._channel(pending))
        decision = self.resolve(pending, reply)

        if decision is Decision.ALWAYS:
            self.allowed_tools.add(name)
            logger.info(f"Tool whitelisted for session: {name}")
            if self._on_whitelisted:
                self._on_whitelisted(name)
        return decision

    async def confirm_continue(self, limit: int) -> Decision:
        """Ask whether to keep going once the step safety limit is hit."""
        pending = PendingApproval(
            tool_call_id=new_id("sys-limit"),
            name=CONTINUE_TOOL_NAME,
            arguments={"reason": f"Safety limit ({limit} steps) reached. Continue?"},
            risk_level=RiskLevel.CAUTION,
        )
        reply = _to_reply(await self._channel(pending))
        return Decision.DENY if reply.decision is Decision.DENY else Decision.ALLOW

    @staticmethod
    def resolve(pending: PendingApproval, reply: ApprovalReply) -> Decision:
        """Apply the challenge ritual to a raw human reply."""
        if reply.decision is Decision.DENY:
            return Decision.DENY

        if pending.challenge_code is not None:
            if reply.code != pending.challenge_code:
                logger.warning(
                    f"Challenge code mismatch for {pending.name} "
                    f"({pending.tool_call_id}), denying"
                )
                return Decision.DENY
            return Decision.ALLOW

        return reply.decision
