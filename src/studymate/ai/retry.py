"""Retry/backoff for outbound AI requests.

Transient failures back off exponentially (capped). Rate-limit responses wait
a fixed, much longer delay.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from studymate.ai.errors import HTTPStatusError, StudyMateAIError
from studymate.ai.models import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

_RATE_LIMIT_MARKERS = ("429", "rate limit", "rate_limit", "too many requests")


def is_rate_limited(exc: BaseException) -> bool:
    """HTTP 429, or any error whose message carries a rate-limit marker."""
    if isinstance(exc, HTTPStatusError) and exc.is_rate_limited:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def is_retryable(exc: BaseException) -> bool:
    """Taxonomy errors say so themselves; anything else is assumed transient."""
    if isinstance(exc, StudyMateAIError):
        return exc.retryable
    return True


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    return min(base_delay * (2 ** attempt), max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    *,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    rate_limit_delay: float = 30.0,
    rate_limit_max_delay: float = 120.0,
    sleep: Sleep = asyncio.sleep,
    purpose: str = "request",
) -> T:
    """Run ``operation`` with up to ``max_retries`` retries.

    ``operation`` is called afresh on every attempt, so each retry issues a
    new request. Once retries are exhausted the last error is re-raised
    unchanged; translating it for the user is the caller's job.
    """
    remaining = max_retries
    while True:
        try:
            return await operation()
        except Exception as exc:
            if remaining <= 0 or not is_retryable(exc):
                raise

            attempt = max_retries - remaining
            if is_rate_limited(exc):
                delay = rate_limit_delay
                retry_after = getattr(exc, "retry_after", None)
                if retry_after and retry_after > delay:
                    delay = min(retry_after, max(rate_limit_max_delay, rate_limit_delay))
                logger.warning(
                    "%s rate limited (attempt %d/%d), retrying in %.1fs",
                    purpose, attempt + 1, max_retries, delay,
                )
            else:
                delay = backoff_delay(attempt, base_delay, max_delay)
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                    purpose, attempt + 1, max_retries, delay, exc,
                )
            remaining -= 1
            await sleep(delay)


async def retry_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
    purpose: str = "request",
) -> T:
    return await with_retry(
        operation,
        policy.max_retries,
        base_delay=policy.base_delay,
        max_delay=policy.max_delay,
        rate_limit_delay=policy.rate_limit_delay,
        rate_limit_max_delay=policy.rate_limit_max_delay,
        sleep=sleep,
        purpose=purpose,
    )
