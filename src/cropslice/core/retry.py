"""Retry combinator with capped exponential backoff."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .exceptions import StorageError, UploadError
from .logging_config import get_logger

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay before retry ``n`` is ``initial_delay * factor**(n-1)``, capped at ``max_delay``."""

    initial_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 8.0

    def delay_for(self, attempt: int) -> float:
        if attempt < 1:
            raise ValueError(f"Attempt numbers start at 1, got {attempt}")
        return min(self.max_delay, self.initial_delay * self.factor ** (attempt - 1))


async def with_retry(
    operation: Callable[[int], Awaitable[T]],
    max_attempts: int = 2,
    backoff: Optional[BackoffPolicy] = None,
    retry_on: Tuple[Type[BaseException], ...] = (StorageError,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    operation_name: str = "upload",
) -> T:
    """
    Run ``operation(attempt)`` until it succeeds or the budget is spent.

    Each call must be safe to re-invoke from scratch: nothing from a failed
    attempt is reused. Only exceptions in ``retry_on`` trigger another
    attempt; anything else propagates immediately.

    Raises:
        UploadError: after ``max_attempts`` failures, chained to the last one
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    logger = get_logger("cropslice.retry")
    backoff = backoff or BackoffPolicy()
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation(attempt)
        except retry_on as exc:
            last_error = exc
            logger.error(f"Attempt {attempt}/{max_attempts} of {operation_name} failed: {exc}")
            if attempt == max_attempts:
                break
            delay = backoff.delay_for(attempt)
            logger.info(f"Retrying {operation_name} in {delay:.2f}s")
            await sleep(delay)

    raise UploadError(
        f"Failed to {operation_name} after {max_attempts} attempts: {last_error}",
        attempts=max_attempts,
    ) from last_error
