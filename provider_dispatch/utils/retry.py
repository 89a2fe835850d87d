"""Retry logic utilities."""

import asyncio
import inspect
from typing import Callable, Any

import structlog

from ..models.schemas import RetryConfig

logger = structlog.get_logger(__name__)


class RetryHandler:
    """Handles retry logic with exponential backoff."""

    def __init__(self, config: RetryConfig):
        self.config = config
        self.last_attempts = 0

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt number."""
        delay = self.config.base_delay * (self.config.exponential_base ** (attempt - 1))
        return min(delay, self.config.max_delay)

    async def execute_with_retry(
        self,
        operation: Callable,
        operation_name: str = "operation",
        *args,
        **kwargs
    ) -> Any:
        """Execute operation with retry logic.

        Cancellation is never retried. When every attempt fails the last
        exception is re-raised.
        """
        last_exception = None

        for attempt in range(1, self.config.max_attempts + 1):
            self.last_attempts = attempt
            try:
                result = operation(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result

                if attempt > 1:
                    logger.info("Retry succeeded", operation=operation_name, attempt=attempt)

                return result

            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_exception = e
                logger.warning("Attempt failed", operation=operation_name, attempt=attempt, error=str(e))

                if attempt < self.config.max_attempts:
                    delay = self.calculate_delay(attempt)
                    logger.info("Retrying", operation=operation_name, delay=round(delay, 2))
                    await asyncio.sleep(delay)
                else:
                    logger.error("Giving up", operation=operation_name, attempts=self.config.max_attempts)

        if last_exception:
            raise last_exception
