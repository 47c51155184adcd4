"""Tests for the shared upstream retry policy."""

from __future__ import annotations

import pytest

from app.errors import MediaNotFoundError, ProviderTransientError
from app.services.retry import RetryPolicy


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.anyio("asyncio")
async def test_transient_failures_back_off_exponentially() -> None:
    sleep = RecordingSleep()
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleep)
    attempts = 0

    async def operation() -> str:
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise ProviderTransientError("tmdb", "upstream returned 503", status_code=503)
        return "ok"

    assert await policy.run(operation) == "ok"
    assert attempts == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.anyio("asyncio")
async def test_not_found_is_attempted_once() -> None:
    sleep = RecordingSleep()
    policy = RetryPolicy(max_attempts=3, sleep=sleep)
    attempts = 0

    async def operation() -> None:
        nonlocal attempts
        attempts += 1
        raise MediaNotFoundError("tmdb", "resource not found", status_code=404)

    with pytest.raises(MediaNotFoundError):
        await policy.run(operation)

    assert attempts == 1
    assert sleep.delays == []


@pytest.mark.anyio("asyncio")
async def test_last_transient_error_is_raised_after_exhaustion() -> None:
    sleep = RecordingSleep()
    policy = RetryPolicy(max_attempts=2, base_delay=0.5, sleep=sleep)

    async def operation() -> None:
        raise ProviderTransientError("anilist", "ConnectError")

    with pytest.raises(ProviderTransientError):
        await policy.run(operation)

    assert sleep.delays == [0.5]


def test_delay_for_doubles_each_attempt() -> None:
    policy = RetryPolicy(base_delay=1.0)

    assert [policy.delay_for(attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_invalid_attempt_count_rejected() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
