"""
Bounded timeout and retry for external calls.

Only transient failures (TransientServiceError, per-call timeout) are
retried. Everything else propagates on the first attempt.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .errors import TransientServiceError

logger = logging.getLogger("formateur.common.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Timeout and backoff settings for one kind of external call"""
    timeout: float = 30.0
    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 8.0

    def backoff(self) -> wait_exponential:
        """Exponential wait: base_delay, 2*base_delay, ... capped at max_delay."""
        return wait_exponential(multiplier=self.base_delay, max=self.max_delay)


NO_RETRY = RetryPolicy(max_retries=0)


async def call_with_retries(
    factory: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    service: str,
) -> T:
    """
    Await ``factory()`` under ``policy``.

    Args:
        factory: Zero-argument callable returning a fresh awaitable per attempt
        policy: Timeout and retry settings
        service: Service name used in logs and in the raised error

    Returns:
        The awaited result of the first successful attempt

    Raises:
        TransientServiceError: when every attempt failed transiently
    """
    attempts = policy.max_retries + 1

    def log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            "%s call failed (attempt %d/%d): %s; retrying in %.2fs",
            service,
            retry_state.attempt_number,
            attempts,
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
        )

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(TransientServiceError),
        wait=policy.backoff(),
        stop=stop_after_attempt(attempts),
        before_sleep=log_retry,
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                try:
                    return await asyncio.wait_for(factory(), timeout=policy.timeout)
                except asyncio.TimeoutError:
                    raise TransientServiceError(service, f"timed out after {policy.timeout:.1f}s") from None
    except TransientServiceError as e:
        logger.warning("%s call failed after %d attempt(s): %s", service, attempts, e)
        raise
