import pytest

from casper_clients.utils.retry import RetryError, aretry_call, backoff_delay

pytestmark = pytest.mark.anyio


async def test_attempts_count_every_call():
    calls = []

    async def always_fails():
        calls.append(1)
        raise ConnectionError("down")

    with pytest.raises(RetryError) as ei:
        await aretry_call(always_fails, retries=2, base=0.0)
    assert len(calls) == 3
    assert ei.value.attempts == 3
    assert isinstance(ei.value.last_exception, ConnectionError)


async def test_non_retryable_errors_propagate():
    calls = []

    async def bad():
        calls.append(1)
        raise KeyError("x")

    with pytest.raises(KeyError):
        await aretry_call(bad, retries=5, base=0.0, exceptions=ConnectionError)
    assert len(calls) == 1


def test_backoff_is_capped():
    for attempt in range(1, 10):
        assert 0.0 <= backoff_delay(attempt, base=0.5, max_delay=2.0) <= 2.0
