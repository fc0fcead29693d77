"""Tests for voidex.agent.retry and voidex.agent.cancellation."""

import asyncio

import httpx
import pytest

from voidex.agent.cancellation import CancellationToken, RunCancelled
from voidex.agent.retry import call_with_retry, is_retryable


class _Flaky:
    """Fails with *errors* in order, then returns "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def _recording_sleep():
    delays = []

    async def sleep(delay):
        delays.append(delay)

    return delays, sleep


# --- is_retryable ---

@pytest.mark.parametrize(
    "exc, expected",
    [
        (Exception("Error 429: too many requests"), True),
        (Exception("Rate limit exceeded"), True),
        (Exception("fetch failed"), True),
        (ConnectionError("reset"), True),
        (httpx.ConnectError("boom"), True),
        (ValueError("invalid model"), False),
        (Exception("401 unauthorized"), False),
    ],
)
def test_is_retryable(exc, expected):
    assert is_retryable(exc) is expected


# --- call_with_retry ---

@pytest.mark.asyncio
async def test_retry_then_success_doubles_delay():
    fn = _Flaky(Exception("429"), Exception("429"))
    delays, sleep = _recording_sleep()
    statuses = []

    result = await call_with_retry(fn, on_status=statuses.append, sleep=sleep)

    assert result == "ok"
    assert fn.calls == 3
    assert delays == [2.0, 4.0]
    assert statuses == [
        "Connection unstable. Retrying in 2s...",
        "Connection unstable. Retrying in 4s...",
    ]


@pytest.mark.asyncio
async def test_retry_gives_up_after_budget():
    fn = _Flaky(*[Exception("rate limit")] * 5)
    delays, sleep = _recording_sleep()

    with pytest.raises(Exception, match="rate limit"):
        await call_with_retry(fn, retries=3, sleep=sleep)

    assert fn.calls == 4
    assert delays == [2.0, 4.0, 8.0]


@pytest.mark.asyncio
async def test_non_retryable_propagates_immediately():
    fn = _Flaky(ValueError("bad request"))
    delays, sleep = _recording_sleep()

    with pytest.raises(ValueError):
        await call_with_retry(fn, sleep=sleep)

    assert fn.calls == 1
    assert delays == []


@pytest.mark.asyncio
async def test_cancel_during_backoff():
    token = CancellationToken()
    fn = _Flaky(Exception("429"))

    async def sleep(delay):
        token.cancel()
        await asyncio.sleep(10)

    with pytest.raises(RunCancelled):
        await call_with_retry(fn, token=token, sleep=sleep)
    assert fn.calls == 1


# --- CancellationToken ---

@pytest.mark.asyncio
async def test_race_returns_result():
    token = CancellationToken()

    async def work():
        return 42

    assert await token.race(work()) == 42


@pytest.mark.asyncio
async def test_race_cancels_loser():
    token = CancellationToken()
    cleaned = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cleaned.set()
            raise

    asyncio.get_running_loop().call_later(0.01, token.cancel)
    with pytest.raises(RunCancelled):
        await token.race(slow())
    assert cleaned.is_set()


@pytest.mark.asyncio
async def test_race_already_cancelled():
    token = CancellationToken()
    token.cancel()

    async def work():
        return 1

    with pytest.raises(RunCancelled):
        await token.race(work())
    with pytest.raises(RunCancelled):
        token.check()


@pytest.mark.asyncio
async def test_iterate_stops_on_cancel():
    token = CancellationToken()

    async def source():
        yield 1
        token.cancel()
        yield 2
        await asyncio.sleep(10)
        yield 3

    seen = []
    with pytest.raises(RunCancelled):
        async for item in token.iterate(source()):
            seen.append(item)
    assert seen[0] == 1
    assert 3 not in seen
