"""Cooperative cancellation for one agent run."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, AsyncIterator, Awaitable
from typing import Any, TypeVar

T = TypeVar("T")

_END = object()


class RunCancelled(Exception):
    """Raised inside a run once its token has been cancelled."""


class CancellationToken:
    """Single cancellation signal shared by every suspension point of a run.

    ``race`` wraps an awaitable so that it is abandoned (and its task
    cancelled, which kills any subprocess it owns) as soon as ``cancel``
    is called.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def check(self) -> None:
        if self._event.is_set():
            raise RunCancelled()

    async def race(self, aw: Awaitable[T]) -> T:
        """Await *aw* unless the token fires first."""
        if self._event.is_set():
            if asyncio.iscoroutine(aw):
                aw.close()
            raise RunCancelled()
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        # Let the task run its cleanup (e.g. kill a child process)
        await asyncio.gather(task, return_exceptions=True)
        raise RunCancelled()

    async def iterate(self, source: AsyncIterable[T]) -> AsyncIterator[T]:
        """Yield from *source*, observing the token between every item."""
        iterator = source.__aiter__()
        while True:
            item: Any = await self.race(_next(iterator))
            if item is _END:
                return
            yield item


async def _next(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END
