"""Tests for the bounded fixed-interval poller."""

from unittest.mock import patch

import pytest

from cloudlaunch.provisioning.poll import PollTimeout, poll


def _sequence(*values):
    it = iter(values)
    return lambda: next(it)


async def test_returns_first_accepted_result():
    probe = _sequence("initializing", "initializing", "running")
    result = await poll(probe, attempts=5, interval=0, accept=lambda s: s == "running")
    assert result == "running"


async def test_async_probe():
    calls = []

    async def probe():
        calls.append(1)
        return len(calls) >= 2

    assert await poll(probe, attempts=3, interval=0) is True
    assert len(calls) == 2


async def test_timeout_after_max_attempts():
    calls = []

    def probe():
        calls.append(1)
        return "initializing"

    with pytest.raises(PollTimeout) as exc_info:
        await poll(probe, attempts=4, interval=0, accept=lambda s: s == "running")

    assert len(calls) == 4
    assert exc_info.value.attempts == 4
    assert exc_info.value.last_result == "initializing"


async def test_retry_on_listed_exceptions():
    results = iter([ValueError("flaky"), "ok"])

    def probe():
        value = next(results)
        if isinstance(value, Exception):
            raise value
        return value

    assert await poll(probe, attempts=2, interval=0, retry_on=(ValueError,)) == "ok"


async def test_other_exceptions_propagate():
    def probe():
        raise KeyError("boom")

    with pytest.raises(KeyError):
        await poll(probe, attempts=3, interval=0, retry_on=(ValueError,))


async def test_fixed_interval_between_attempts():
    with patch("cloudlaunch.provisioning.poll.asyncio.sleep") as mock_sleep:
        with pytest.raises(PollTimeout):
            await poll(lambda: False, attempts=3, interval=5)
    assert [c.args[0] for c in mock_sleep.call_args_list] == [5, 5]


async def test_sleep_first():
    with patch("cloudlaunch.provisioning.poll.asyncio.sleep") as mock_sleep:
        await poll(lambda: True, attempts=3, interval=2, sleep_first=True)
    assert mock_sleep.call_count == 1
