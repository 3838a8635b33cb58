"""Bounded, classified retries around a single unit of work."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from .contracts import ErrorContext, ErrorDetail, ErrorLogEntry, RetryContext, RetryOutcome
from .errorlog import ErrorLogger
from .errors import error_code, error_message
from .utils.retry import compute_backoff, is_retryable

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[None]]


class RetryCoordinator:
    """Run an operation with retries for transient failures.

    Args:
        max_retries: Total number of attempts per operation.
        retry_delay: Base delay in milliseconds.
        exponential_backoff: Double the delay after every failed attempt.
        error_logger: Receives one entry per failed attempt.
        sleep: Awaitable used for backoff delays (seconds).
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: int = 1000,
        exponential_backoff: bool = True,
        error_logger: Optional[ErrorLogger] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.exponential_backoff = exponential_backoff
        self._error_logger = error_logger
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff in seconds after failed ``attempt``."""
        return compute_backoff(
            attempt, self.retry_delay / 1000.0, self.exponential_backoff
        )

    async def run(self, operation: Operation, context: RetryContext) -> RetryOutcome:
        context.max_attempts = self.max_retries
        context.attempt = 0
        while True:
            context.attempt += 1
            try:
                value = await operation()
            except Exception as exc:
                context.last_error = exc
                await self._log_failure(context, exc)
                retryable = is_retryable(exc)
                if not retryable or context.attempt >= context.max_attempts:
                    logger.debug(
                        f"{context.operation} failed for {context.file} after "
                        f"{context.attempt} attempt(s): {error_message(exc)}"
                    )
                    return RetryOutcome(
                        success=False, error=exc, attempts=context.attempt
                    )
                delay = self.delay_for(context.attempt)
                logger.info(
                    f"Retry attempt {context.attempt}/{context.max_attempts} for "
                    f"{context.file} after {delay * 1000:.0f}ms..."
                )
                await self._sleep(delay)
                continue
            return RetryOutcome(success=True, value=value, attempts=context.attempt)

    async def _log_failure(self, context: RetryContext, exc: BaseException) -> None:
        if self._error_logger is None:
            return
        await self._error_logger.record(
            ErrorLogEntry(
                file=context.file,
                error=ErrorDetail(message=error_message(exc), code=error_code(exc)),
                context=ErrorContext(attempt=context.attempt, operation=context.operation),
            )
        )
