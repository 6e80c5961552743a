"""
Provider Retry - Exponential backoff for transient provider failures.

Only rate-limit/quota and overload failures are retried. Terminal
failures are logged and yield None after a single call. Exhaustion of
the attempt budget is logged and also yields None.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from core.constants import (
    RETRY_BACKOFF_MULTIPLIER,
    RETRY_BASE_DELAY_SECONDS,
    RETRY_MAX_ATTEMPTS,
)
from providers.exceptions import ProviderError, is_retryable


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff shape."""
    max_attempts: int = RETRY_MAX_ATTEMPTS
    base_delay: float = RETRY_BASE_DELAY_SECONDS
    multiplier: float = RETRY_BACKOFF_MULTIPLIER

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_for(self, retry_index: int) -> float:
        """Delay before retry number retry_index (0-based)."""
        return self.base_delay * (self.multiplier ** retry_index)


DEFAULT_RETRY_POLICY = RetryPolicy()


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    label: str = "provider call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Optional[T]:
    """
    Run operation, retrying transient failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        policy: Attempt budget and delays
        label: Name used in log lines
        sleep: Awaitable sleep, injectable for tests

    Returns:
        The operation's result, or None on terminal failure / exhaustion
    """
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not is_retryable(e):
                details = e.to_dict() if isinstance(e, ProviderError) else {"error": str(e)}
                logger.error(f"[{label}] Terminal failure: {e} | {details}")
                return None

            if attempt + 1 >= policy.max_attempts:
                logger.error(
                    f"[{label}] Giving up after {policy.max_attempts} attempts: {e}"
                )
                return None

            delay = policy.delay_for(attempt)
            logger.warning(
                f"[{label}] Transient failure (attempt {attempt + 1}/"
                f"{policy.max_attempts}), retrying in {delay:.1f}s: {e}"
            )
            await sleep(delay)

    return None
