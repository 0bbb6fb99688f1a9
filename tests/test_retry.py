import asyncio
import time

import pytest

from solana_tx_indexer.errors import NetworkError, RpcError
from solana_tx_indexer.retry import (
    RetryDecision,
    RetryPolicy,
    backoff_delay,
    decide_retry,
    is_retryable_message,
    with_retry,
)


def test_connection_reset_is_retried_until_success() -> None:
    calls = 0
    delays: list[float] = []

    async def operation() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise NetworkError("network error: connection reset by peer")
        return "ok"

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    policy = RetryPolicy(max_attempts=3, base_delay=0.05, max_delay=1.0)
    result = asyncio.run(with_retry(operation, policy, sleep=fake_sleep))

    assert result == "ok"
    assert calls == 3
    assert delays == [0.05, 0.1]


def test_validation_error_fails_fast() -> None:
    calls = 0

    async def operation() -> None:
        nonlocal calls
        calls += 1
        raise ValueError("invalid public key input")

    with pytest.raises(ValueError, match="invalid public key"):
        asyncio.run(with_retry(operation, RetryPolicy(max_attempts=5, base_delay=0.0)))
    assert calls == 1


def test_exhaustion_surfaces_the_last_original_error() -> None:
    errors = [RpcError(f"HTTP 503 Service Unavailable #{i}", status_code=503) for i in range(3)]
    calls = 0

    async def operation() -> None:
        nonlocal calls
        err = errors[calls]
        calls += 1
        raise err

    policy = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)
    with pytest.raises(RpcError) as excinfo:
        asyncio.run(with_retry(operation, policy))

    assert calls == 3
    assert excinfo.value is errors[-1]
    assert excinfo.value.status_code == 503


def test_backoff_gaps_grow_between_attempts() -> None:
    stamps: list[float] = []

    async def operation() -> None:
        stamps.append(time.monotonic())
        raise NetworkError("timeout: getTransaction")

    policy = RetryPolicy(max_attempts=3, base_delay=0.05, max_delay=1.0)
    with pytest.raises(NetworkError):
        asyncio.run(with_retry(operation, policy))

    assert len(stamps) == 3
    gap2 = stamps[1] - stamps[0]
    gap3 = stamps[2] - stamps[1]
    assert gap2 >= 0.04
    assert gap3 > gap2


def test_backoff_delay_is_capped() -> None:
    policy = RetryPolicy(max_attempts=10, base_delay=1.0, max_delay=10.0)
    assert backoff_delay(1, policy) == 0.0
    assert backoff_delay(2, policy) == 1.0
    assert backoff_delay(3, policy) == 2.0
    assert backoff_delay(5, policy) == 8.0
    assert backoff_delay(6, policy) == 10.0


def test_decide_retry_uses_message_text_only() -> None:
    policy = RetryPolicy(max_attempts=3)
    assert decide_retry(RuntimeError("429 Too Many Requests"), 1, policy) is RetryDecision.RETRY
    assert decide_retry(RuntimeError("Rate limit exceeded"), 3, policy) is RetryDecision.EXHAUSTED
    assert decide_retry(RuntimeError("account not found"), 1, policy) is RetryDecision.FAIL_FAST


def test_retryable_patterns_are_case_insensitive() -> None:
    assert is_retryable_message("ECONNRESET")
    assert is_retryable_message("Socket hang up")
    assert is_retryable_message("HTTP 502 Bad Gateway")
    assert not is_retryable_message("Invalid param: WrongSize")
    assert not is_retryable_message("")


def test_policy_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
