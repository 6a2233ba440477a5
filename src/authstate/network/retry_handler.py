"""
AuthState - Retry Handler

Retries avec backoff exponentiel. Un StoreTimeoutError a un résultat
inconnu: il est retenté, jamais considéré comme un succès.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .interfaces import IRetryHandler, RetryConfig, RetryResult

T = TypeVar("T")


class MaxRetriesExceededError(Exception):
    """Nombre max de tentatives atteint."""

    def __init__(self, attempts: int, last_error: Optional[Exception]) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries ({attempts}) exceeded: {last_error}")


class RetryHandler(IRetryHandler):
    """Gestion retries avec backoff exponentiel."""

    def __init__(self, default_config: Optional[RetryConfig] = None) -> None:
        self._default_config = default_config or RetryConfig()

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        config: Optional[RetryConfig] = None,
        **kwargs: Any,
    ) -> RetryResult:
        retry_config = config or self._default_config
        last_error: Optional[Exception] = None
        total_delay = 0.0

        for attempt in range(retry_config.max_attempts):
            try:
                result = await func(*args, **kwargs)
                return RetryResult(
                    success=True,
                    result=result,
                    attempts=attempt + 1,
                    total_delay=total_delay,
                    last_error=None,
                )

            except Exception as e:
                last_error = e

                if not self.is_retryable(e, retry_config):
                    return RetryResult(
                        success=False,
                        result=None,
                        attempts=attempt + 1,
                        total_delay=total_delay,
                        last_error=e,
                    )

                if attempt < retry_config.max_attempts - 1:
                    delay = self.calculate_delay(attempt, retry_config)
                    total_delay += delay
                    await asyncio.sleep(delay)

        return RetryResult(
            success=False,
            result=None,
            attempts=retry_config.max_attempts,
            total_delay=total_delay,
            last_error=last_error,
        )

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        config: Optional[RetryConfig] = None,
        **kwargs: Any,
    ) -> T:
        outcome = await self.execute_with_retry(func, *args, config=config, **kwargs)
        if outcome.success:
            return outcome.result
        if outcome.last_error is not None:
            raise outcome.last_error
        raise MaxRetriesExceededError(outcome.attempts, None)

    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """
        Formula: min(initial * (base ^ attempt), max_delay)
        - Attempt 0: initial_delay
        - Attempt 1: initial_delay * base
        - Attempt 2: initial_delay * base^2
        """
        delay = config.initial_delay * (config.exponential_base**attempt)
        return min(delay, config.max_delay)

    def is_retryable(self, error: Exception, config: RetryConfig) -> bool:
        return isinstance(error, config.retryable_exceptions)
