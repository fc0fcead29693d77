"""AgentExecutor — drives one user turn through the LangGraph state machine."""

from __future__ import annotations

from collections.abc import Iterable

from langgraph.errors import GraphRecursionError
from loguru import logger

from voidex.agent.approval import ApprovalGate
from voidex.agent.callbacks import Emitter, ExecutorCallbacks, deny_all
from voidex.agent.cancellation import CancellationToken, RunCancelled
from voidex.agent.context import ContextBuilder
from voidex.agent.graph import create_graph
from voidex.agent.models import Message
from voidex.agent.nodes import RunContext, ToolExecutor
from voidex.agent.state import AgentStatus
from voidex.agent.tools import make_tools
from voidex.core.config.schema import Config
from voidex.core.providers.base import BaseLLMProvider


class AgentExecutor:
    """
    Request-scoped orchestrator around the executor graph.

    Flow:
        1. Wrap callbacks so they go silent on cancellation
        2. Create the approval gate seeded with the session AllowList
        3. graph.ainvoke(state) — no checkpoint, history lives with the caller
        4. Return the final history (or the last published one on cancel)
    """

    def __init__(
        self,
        config: Config,
        provider: BaseLLMProvider | None = None,
        tools: ToolExecutor | None = None,
    ):
        self.config = config
        if provider is None:
            from voidex.core.providers.litellm import LiteLLMProvider

            provider = LiteLLMProvider()
        self.provider = provider
        self.tools = tools if tools is not None else make_tools(config)
        self.context = ContextBuilder(config)
        self.status: AgentStatus | None = None

    async def run(
        self,
        model: str,
        api_key: str | None,
        messages: list[Message],
        callbacks: ExecutorCallbacks | None = None,
        token: CancellationToken | None = None,
        allowed_tools: Iterable[str] = (),
    ) -> list[Message]:
        """Run the agent until DONE, ERROR or cancellation.

        The input list is never mutated. Callbacks fire while the run makes
        progress and stay silent once *token* is cancelled. Otherwise the
        last ``on_status_update`` is always ``None``.
        """
        token = token or CancellationToken()
        callbacks = callbacks or ExecutorCallbacks()
        emit = Emitter(callbacks, token)
        gate = ApprovalGate(
            callbacks.on_need_approval or deny_all,
            allowed_tools,
            on_whitelisted=emit.whitelisted,
        )
        run = RunContext(
            config=self.config,
            provider=self.provider,
            tools=self.tools,
            gate=gate,
            emit=emit,
            token=token,
            context=self.context,
            model=model,
            api_key=api_key,
            api_base=self.config.get_api_base(model),
            messages=list(messages),
        )
        graph = create_graph(run)
        logger.info(f"Run started: model={model}, history={len(messages)} messages")

        try:
            final = await graph.ainvoke(
                {"messages": list(messages), "status": AgentStatus.THINKING, "steps": 0},
                config={"recursion_limit": self.config.assistant.recursion_limit},
            )
            history = final["messages"]
        except RunCancelled:
            logger.info("Run cancelled")
            history = run.messages
        except GraphRecursionError as e:
            logger.error(f"Recursion limit reached: {e}")
            emit.error(f"Recursion limit reached: {e}")
            run.transition(AgentStatus.ERROR)
            history = run.messages
        finally:
            self.status = run.status
            emit.status(None)

        logger.info(f"Run finished: status={run.status.value}, history={len(history)} messages")
        return list(history)
