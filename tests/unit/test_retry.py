"""
Unit tests untuk RetryPolicy.
"""

import pytest

from zkatom.errors import RetryLimitExceeded
from zkatom.retry import RetryPolicy


def test_delay_is_bounded():
    policy = RetryPolicy(base_delay=0.01, max_delay=0.05)

    for attempt in range(1, 50):
        delay = policy.delay(attempt)
        assert 0 <= delay <= min(0.05, 0.01 * 2 ** (attempt - 1))


def test_delay_handles_large_attempts():
    policy = RetryPolicy(base_delay=0.01, max_delay=0.5)
    assert 0 <= policy.delay(10_000) <= 0.5


def test_zero_base_delay():
    assert RetryPolicy(base_delay=0).delay(5) == 0.0


@pytest.mark.asyncio
async def test_unbounded_by_default():
    policy = RetryPolicy(base_delay=0)
    for attempt in range(1, 100):
        await policy.wait(attempt)


@pytest.mark.asyncio
async def test_max_attempts():
    policy = RetryPolicy(base_delay=0, max_attempts=3)
    await policy.wait(1)
    await policy.wait(2)

    with pytest.raises(RetryLimitExceeded) as exc_info:
        await policy.wait(3)

    assert exc_info.value.attempts == 3
