"""Graph nodes — guard, think, execute_tools."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

from langgraph.graph import END
from loguru import logger

from voidex.agent.approval import ApprovalGate
from voidex.agent.callbacks import Emitter
from voidex.agent.cancellation import CancellationToken, RunCancelled
from voidex.agent.context import ContextBuilder
from voidex.agent.history import to_api_messages, truncate_for_ram
from voidex.agent.loop_detector import is_looping
from voidex.agent.models import Decision, Message, ToolCall
from voidex.agent.risk import classify
from voidex.agent.state import AgentStatus, ExecutorState
from voidex.agent.retry import call_with_retry
from voidex.agent.stream import StreamAssembler
from voidex.agent.tools.result import OutputCallback, ToolResult
from voidex.core.config.schema import Config
from voidex.core.providers.base import BaseLLMProvider

DENIED_MARKER = "[STOPPED] User denied permission."
STOPPED_BY_USER = "[STOPPED] User chose to stop."
LOOP_ERROR = "Loop Detected: Agent repeating actions. Stopping."
LOOP_HINT = (
    "The same action keeps producing the same result. "
    "Rephrase the request or give the agent a different approach."
)
HEAL_TRIGGER = "command not found"


class ToolExecutor(Protocol):
    """What the executor needs from a tool collaborator."""

    def definitions(self) -> list[dict[str, Any]]: ...

    async def execute(
        self,
        name: str,
        args: dict[str, Any],
        on_output: OutputCallback | None = None,
    ) -> ToolResult: ...


@dataclass
class RunContext:
    """Everything the nodes of one run close over.

    ``messages`` and ``status`` mirror the latest graph update, so the
    executor can still report them when the graph is abandoned mid-way.
    """

    config: Config
    provider: BaseLLMProvider
    tools: ToolExecutor
    gate: ApprovalGate
    emit: Emitter
    token: CancellationToken
    context: ContextBuilder
    model: str
    api_key: str | None = None
    api_base: str | None = None
    status: AgentStatus = AgentStatus.THINKING
    messages: list[Message] | None = None

    def transition(self, status: AgentStatus) -> None:
        if status is not self.status:
            logger.debug(f"State: {self.status.value} → {status.value}")
        self.status = status

    def update(self, **changes: Any) -> dict[str, Any]:
        """Record a node's state update and hand it back to LangGraph."""
        if "status" in changes:
            self.transition(changes["status"])
        if "messages" in changes:
            self.messages = changes["messages"]
        return changes

    def publish(self, messages: list[Message]) -> None:
        self.messages = messages
        self.emit.messages(messages)


def heal_prompt(output: str) -> str:
    """Instruction appended after a tool reported a missing command."""
    return (
        f"CMD FAILED: {output}\n\n"
        "The command is not installed. Install it with the system package "
        "manager (or pip/npm where appropriate), then retry the original step."
    )


def parse_arguments(call: ToolCall) -> dict[str, Any] | None:
    """Decode a call's JSON arguments; None when they are not a JSON object."""
    raw = call.function.arguments or "{}"
    try:
        args = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return args if isinstance(args, dict) else None


def make_nodes(run: RunContext):
    """
    Create node functions closed over one run's collaborators.

    Returns dict of {node_name: callable} for graph registration.
    """
    assistant = run.config.assistant

    async def guard(state: ExecutorState) -> dict[str, Any]:
        """Enforce the step safety limit before every model call."""
        run.token.check()
        steps = state.get("steps", 0)
        if steps < assistant.max_steps:
            return run.update(status=AgentStatus.THINKING)

        logger.warning(f"Safety limit reached after {steps} steps")
        run.transition(AgentStatus.WAITING_APPROVAL)
        run.emit.status("Safety Limit Reached. Waiting approval...")
        try:
            decision = await run.token.race(run.gate.confirm_continue(assistant.max_steps))
        except RunCancelled:
            raise
        except Exception as e:
            logger.error(f"Approval channel failed at safety limit: {e}")
            run.emit.error(f"Approval failed: {e}")
            return run.update(status=AgentStatus.ERROR)

        if decision is Decision.DENY:
            messages = [*state["messages"], Message.system(STOPPED_BY_USER)]
            run.publish(messages)
            return run.update(messages=messages, status=AgentStatus.DONE)
        logger.info("Safety limit extended by user")
        return run.update(steps=0, status=AgentStatus.THINKING)

    async def think(state: ExecutorState) -> dict[str, Any]:
        """Stream one assistant turn into the history."""
        run.token.check()
        run.emit.status("Thinking...")
        messages = list(state["messages"])
        steps = state.get("steps", 0) + 1
        assembler = StreamAssembler(flush_interval=assistant.stream_flush_interval)
        appended = False

        def on_update(message: Message) -> None:
            nonlocal appended
            if not appended:
                messages.append(message)
                appended = True
            run.publish(messages)

        payload = to_api_messages(run.context.build(), messages)
        try:
            fragments = await call_with_retry(
                lambda: run.provider.astream(
                    payload,
                    model=run.model,
                    tools=run.tools.definitions() or None,
                    api_key=run.api_key,
                    api_base=run.api_base,
                ),
                on_status=run.emit.status,
                token=run.token,
                retries=run.config.retry.retries,
                initial_delay=run.config.retry.initial_delay,
            )
            reply = await assembler.consume(fragments, on_update=on_update, token=run.token)
        except RunCancelled:
            raise
        except Exception as e:
            logger.error(f"Model call failed: {e}")
            if appended:
                messages.pop()
                run.publish(messages)
            run.emit.error(str(e))
            return run.update(messages=messages, steps=steps, status=AgentStatus.ERROR)

        if not appended:
            messages.append(reply)
            run.publish(messages)

        if reply.tool_calls:
            names = [tc.function.name for tc in reply.tool_calls]
            logger.debug(f"LLM tool calls: {names}")
            status = AgentStatus.EXECUTING_TOOLS
        else:
            logger.debug(f"LLM response (no tools): {(reply.content or '')[:80]!r}")
            status = AgentStatus.DONE
        return run.update(messages=messages, steps=steps, status=status)

    async def execute_tools(state: ExecutorState) -> dict[str, Any]:
        """Gate and run every tool call of the last assistant turn."""
        run.token.check()
        messages = list(state["messages"])
        calls = messages[-1].tool_calls if messages else []
        if not calls:
            return run.update(status=AgentStatus.DONE)

        if is_looping(messages):
            logger.warning("Loop detected, stopping run")
            run.emit.error(f"{LOOP_ERROR}\n{LOOP_HINT}")
            return run.update(status=AgentStatus.ERROR)

        results: list[Message] = []
        heal_output: str | None = None
        denied = False

        for call in calls:
            run.token.check()
            name = call.function.name
            args = parse_arguments(call)
            if args is None:
                logger.warning(f"Invalid JSON arguments for {name}: {call.function.arguments!r}")
                results.append(
                    Message.tool(call.id, name, f"[ERROR] Invalid JSON: {call.function.arguments}")
                )
                continue

            risk = classify(name, args)
            if run.gate.needs_approval(name, risk):
                run.emit.status("Security Check...")
                try:
                    decision = await run.token.race(run.gate.request(call.id, name, args, risk))
                except RunCancelled:
                    raise
                except Exception as e:
                    logger.error(f"Approval channel failed for {name}: {e}")
                    messages.extend(results)
                    run.publish(messages)
                    run.emit.error(f"Approval failed: {e}")
                    return run.update(messages=messages, status=AgentStatus.ERROR)
                if decision is Decision.DENY:
                    logger.warning(f"Tool call denied: {name} ({risk.level.value}: {risk.reason})")
                    results.append(Message.tool(call.id, name, DENIED_MARKER))
                    denied = True
                    break

            run.emit.status(f"Executing {name}...")
            try:
                result = await run.token.race(
                    run.tools.execute(name, args, on_output=run.emit.live)
                )
            except RunCancelled:
                raise
            except Exception as e:
                logger.error(f"Tool crashed: {name} → {e}")
                results.append(Message.tool(call.id, name, f"[TOOL CRASH] {e}"))
                continue
            finally:
                run.emit.live("")

            results.append(Message.tool(call.id, name, truncate_for_ram(result.output) or "Done"))
            if result.is_error and HEAL_TRIGGER in result.output.lower():
                heal_output = result.output

        messages.extend(results)
        run.publish(messages)

        if denied:
            return run.update(messages=messages, status=AgentStatus.DONE)
        if heal_output is not None:
            logger.info("Missing command detected, asking the model to install it")
            messages.append(Message.user(heal_prompt(heal_output)))
            run.publish(messages)
        return run.update(messages=messages, status=AgentStatus.THINKING)

    return {"guard": guard, "think": think, "execute_tools": execute_tools}


def route_after_guard(state: ExecutorState) -> str:
    return "think" if state["status"] is AgentStatus.THINKING else END


def route_after_think(state: ExecutorState) -> str:
    return "execute_tools" if state["status"] is AgentStatus.EXECUTING_TOOLS else END


def route_after_tools(state: ExecutorState) -> str:
    return "guard" if state["status"] is AgentStatus.THINKING else END
