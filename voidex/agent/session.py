"""ChatSession — conversation history + AllowList across runs."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from loguru import logger

from voidex.agent.callbacks import ExecutorCallbacks
from voidex.agent.cancellation import CancellationToken
from voidex.agent.executor import AgentExecutor
from voidex.agent.models import Message

CANCEL_NOTICE = "[NOTICE] Active run cancelled by user."


class ChatSession:
    """
    Owns the history and session AllowList; at most one run is active.

    Submitting a new message cancels and discards the run in flight.
    """

    def __init__(
        self,
        executor: AgentExecutor,
        model: str,
        api_key: str | None = None,
        callbacks: ExecutorCallbacks | None = None,
    ):
        self.executor = executor
        self.model = model
        self.api_key = api_key
        self.callbacks = callbacks or ExecutorCallbacks()
        self.messages: list[Message] = []
        self.allowed_tools: set[str] = set()
        self._task: asyncio.Task | None = None
        self._token: CancellationToken | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def submit(self, text: str) -> list[Message]:
        """Append a user message and run the agent; returns the history."""
        if self.running:
            await self._cancel_active()

        self.messages = [*self.messages, Message.user(text)]
        token = CancellationToken()
        callbacks = replace(self.callbacks, on_tool_whitelisted=self._on_whitelisted)
        task = asyncio.create_task(
            self.executor.run(
                self.model,
                self.api_key,
                self.messages,
                callbacks=callbacks,
                token=token,
                allowed_tools=self.allowed_tools,
            )
        )
        self._task, self._token = task, token

        history = await task
        if self._task is task:
            self._task, self._token = None, None
        if token.cancelled:
            logger.debug("Discarding result of cancelled run")
            return self.messages
        self.messages = history
        return self.messages

    async def stop(self) -> bool:
        """Cancel the active run. Returns False when nothing was running."""
        if not self.running:
            return False
        await self._cancel_active()
        self.messages = [*self.messages, Message.system(CANCEL_NOTICE)]
        logger.info("Active run cancelled by user")
        return True

    def reset(self) -> None:
        """Forget history and the AllowList."""
        self.messages = []
        self.allowed_tools.clear()

    async def _cancel_active(self) -> None:
        task, token = self._task, self._token
        if token is not None:
            token.cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        self._task, self._token = None, None

    def _on_whitelisted(self, name: str) -> None:
        self.allowed_tools.add(name)
        if self.callbacks.on_tool_whitelisted:
            self.callbacks.on_tool_whitelisted(name)
