from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_PATTERNS = (
    "timeout",
    "timed out",
    "econnreset",
    "econnrefused",
    "connection reset",
    "connection refused",
    "socket hang up",
    "network",
    "429",
    "rate limit",
    "too many requests",
    "502",
    "503",
    "504",
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be non-negative")


class RetryDecision(str, Enum):
    RETRY = "retry"
    FAIL_FAST = "fail_fast"
    EXHAUSTED = "exhausted"


def is_retryable_message(message: str) -> bool:
    text = (message or "").lower()
    return any(pattern in text for pattern in RETRYABLE_PATTERNS)


def decide_retry(error: BaseException, attempt: int, policy: RetryPolicy) -> RetryDecision:
    """Classify a failed attempt (1-based) using only the error text."""
    if not is_retryable_message(str(error)):
        return RetryDecision.FAIL_FAST
    if attempt >= policy.max_attempts:
        return RetryDecision.EXHAUSTED
    return RetryDecision.RETRY


def backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Seconds to wait before the given (1-based) attempt."""
    if attempt < 2:
        return 0.0
    return min(policy.base_delay * 2 ** (attempt - 2), policy.max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        if attempt > 1:
            await sleep(backoff_delay(attempt, policy))
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            decision = decide_retry(exc, attempt, policy)
            if decision is not RetryDecision.RETRY:
                if decision is RetryDecision.EXHAUSTED:
                    logger.warning("Giving up after %d attempts: %s", attempt, exc)
                raise
            logger.warning(
                "Attempt %d/%d failed (%s). Retrying in %.2fs",
                attempt,
                policy.max_attempts,
                exc,
                backoff_delay(attempt + 1, policy),
            )

    raise RuntimeError("unreachable: retry loop exited without result")
