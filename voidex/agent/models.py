"""Pydantic data models — conversation log, tool calls, approvals."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


def new_id(prefix: str) -> str:
    """Return a unique message id such as ``tool-3f9c2a1b7d04``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# ════════════════════════════════════════════════════════════
# ENUMS
# ════════════════════════════════════════════════════════════


class RiskLevel(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    CRITICAL = "critical"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    ALWAYS = "always"


# ════════════════════════════════════════════════════════════
# CONVERSATION
# ════════════════════════════════════════════════════════════


class FunctionCall(BaseModel):
    name: str = ""
    arguments: str = ""


class ToolCall(BaseModel):
    """Model-requested tool invocation; ``function.arguments`` is raw JSON."""

    id: str = ""
    type: Literal["function"] = "function"
    function: FunctionCall = Field(default_factory=FunctionCall)


class Message(BaseModel):
    """One entry of the append-only conversation log.

    A ``tool`` message always carries ``tool_call_id`` pointing at a call of
    the assistant message right before its batch.
    """

    id: str = Field(default_factory=lambda: new_id("msg"))
    role: Literal["user", "assistant", "system", "tool"]
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(id=new_id("user"), role="user", content=content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(id=new_id("sys"), role="system", content=content)

    @classmethod
    def tool(cls, call_id: str, name: str, content: str) -> Message:
        return cls(
            id=new_id("tool"),
            role="tool",
            tool_call_id=call_id,
            name=name,
            content=content,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.content or "").strip() and not self.tool_calls


# ════════════════════════════════════════════════════════════
# SAFETY
# ════════════════════════════════════════════════════════════


class RiskAssessment(BaseModel):
    level: RiskLevel
    reason: str | None = None


class PendingApproval(BaseModel):
    """A decision the human channel must make before a tool call runs."""

    tool_call_id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    risk_level: RiskLevel
    reason: str | None = None
    challenge_code: str | None = None


class ApprovalReply(BaseModel):
    """Human answer; ``code`` echoes the challenge for critical requests."""

    decision: Decision
    code: str | None = None
