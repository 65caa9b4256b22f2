"""Caller-side retries for ledger operations.

The ledger itself never retries: a lost connection or an exceeded timeout
surfaces as a RetriableError and the caller picks the policy. RetryConfig
is the usual one, exponential backoff with jitter.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from jobledger.core.errors import RetriableError
from jobledger.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """How often and how patiently to retry one ledger call."""

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (RetriableError,)
    )

    def delay_before(self, retry: int) -> float:
        """Seconds to wait before the given retry (0 for the first retry)."""
        delay = min(self.backoff_base * 2**retry, self.backoff_max)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)
        return delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
) -> T:
    """
    Await `fn()` until it succeeds, retrying only retriable ledger errors.

    Any other exception, e.g. DuplicateExecutionError, propagates on the
    first attempt. Once `max_attempts` is used up the last error is re-raised.

    Example:
        ```python
        await retry_with_backoff(
            lambda: ledger.pause_job("nightly-export"),
            operation_name="pause:nightly-export",
        )
        ```
    """
    config = config or RetryConfig()
    attempt = 1
    while True:
        try:
            return await fn()
        except config.retryable_exceptions as e:
            log = logger.bind(operation=operation_name, attempt=attempt, error=str(e))
            if attempt >= config.max_attempts:
                log.error("retry_exhausted")
                raise

            delay = config.delay_before(attempt - 1)
            log.bind(delay_seconds=round(delay, 2)).warning("retry_scheduled")
            await asyncio.sleep(delay)
            attempt += 1
