"""
Retry Manager for best-effort discovery calls.

Status polling never retries inside a tick (the next tick is the retry).
One-shot calls whose failure would leave the service in an unknown state,
such as cancel, go through this manager, which retries transient errors
with exponential backoff.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .config import RetryConfig
from .enums import ClientErrorCode
from .exceptions import DiscoveryError

T = TypeVar("T")


@dataclass
class RetryResult(Generic[T]):
    """Result of a retry operation."""

    success: bool
    result: Optional[T]
    attempts: int
    last_error: Optional[Exception]


class RetryManager:
    """Retries transient failures with exponential backoff."""

    TRANSIENT_ERROR_CODES = frozenset({
        ClientErrorCode.TIMEOUT.value,
        ClientErrorCode.NETWORK_ERROR.value,
        ClientErrorCode.SERVER_ERROR.value,
    })

    def __init__(self, config: RetryConfig) -> None:
        """
        Initialize the retry manager.

        Args:
            config: Retry configuration with max_retries, delays, and retryable errors
        """
        self._config = config

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate wait time with exponential backoff.

        delay(n) = base_delay * 2^n, capped at max_delay.

        Args:
            attempt: The current attempt number (0-indexed)
        """
        delay = self._config.base_delay_seconds * (2 ** attempt)
        return min(delay, self._config.max_delay_seconds)

    def is_retryable_error(self, error_code) -> bool:
        """
        Check if an error code indicates a transient error.

        Args:
            error_code: The error code (string or ClientErrorCode)
        """
        code = error_code.value if hasattr(error_code, "value") else str(error_code)
        if code in self._config.retryable_errors:
            return True
        return code in self.TRANSIENT_ERROR_CODES

    def is_retryable_exception(self, error: Exception) -> bool:
        """Only DiscoveryErrors with a transient code are retried."""
        if not isinstance(error, DiscoveryError):
            return False
        return self.is_retryable_error(error.code)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        is_retryable: Optional[Callable[[Exception], bool]] = None,
    ) -> RetryResult[T]:
        """
        Execute an operation with retry logic and exponential backoff.

        Args:
            operation: The async operation to execute
            is_retryable: Optional predicate deciding whether an exception
                is retried. Defaults to is_retryable_exception.

        Returns:
            RetryResult containing success status, result, attempts, and last error
        """
        should_retry = is_retryable or self.is_retryable_exception
        last_error: Optional[Exception] = None
        attempts = 0

        # Total attempts = 1 initial + max_retries
        max_attempts = self._config.max_retries + 1

        while attempts < max_attempts:
            try:
                result = await operation()
                return RetryResult(
                    success=True,
                    result=result,
                    attempts=attempts + 1,
                    last_error=None,
                )
            except Exception as e:
                last_error = e
                attempts += 1

                if not should_retry(e) or attempts >= max_attempts:
                    break

                await asyncio.sleep(self._calculate_delay(attempts - 1))

        return RetryResult(
            success=False,
            result=None,
            attempts=attempts,
            last_error=last_error,
        )
