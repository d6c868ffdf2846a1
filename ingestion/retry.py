"""
Retry controller for upstream page requests.

Backoff is linear: after the n-th failed attempt the controller waits
n * base_delay seconds (base, 2*base, 3*base, ...), uncapped. Only
RetryableError subclasses are retried; anything else propagates at once.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from core.exceptions import RetryableError, RetryExhaustedError

logger = logging.getLogger(__name__)


class RetryPolicy:
    """
    Bounded retry with linear backoff.

    Attributes:
        max_attempts: Total attempts per operation (default: 3)
        base_delay: Seconds multiplied by the attempt number (default: 2.0)
        retry_on: Exception types considered transient
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        retry_on: Tuple[Type[Exception], ...] = (RetryableError,),
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.retry_on = retry_on
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return attempt * self.base_delay

    async def run(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        description: Optional[str] = None,
        **kwargs
    ) -> Any:
        """
        Await func(*args, **kwargs) until it succeeds or attempts run out.

        Raises:
            RetryExhaustedError: Every attempt raised a retryable error
        """
        description = description or getattr(func, "__name__", "operation")
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func(*args, **kwargs)
            except self.retry_on as e:
                last_exception = e
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{description} failed (attempt {attempt}/{self.max_attempts}); "
                    f"backing off {delay:.1f}s: {e}"
                )
                await self._sleep(delay)

        raise RetryExhaustedError(
            f"{description} failed after {self.max_attempts} attempts",
            attempts=self.max_attempts,
            context={"operation": description},
            original_exception=last_exception
        )
