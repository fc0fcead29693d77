"""AgentStatus and ExecutorState — LangGraph state definition."""

from __future__ import annotations

from enum import Enum
from typing import TypedDict

from voidex.agent.models import Message


class AgentStatus(str, Enum):
    THINKING = "THINKING"
    EXECUTING_TOOLS = "EXECUTING_TOOLS"
    WAITING_APPROVAL = "WAITING_APPROVAL"
    DONE = "DONE"
    ERROR = "ERROR"

    @property
    def terminal(self) -> bool:
        return self in (AgentStatus.DONE, AgentStatus.ERROR)


class ExecutorState(TypedDict, total=False):
    """
    Graph state for one run.

    Nodes return a fresh ``messages`` list; earlier messages are never
    mutated once a later one is appended.
    """

    messages: list[Message]
    status: AgentStatus
    steps: int
