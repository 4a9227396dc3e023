"""
hsmsigner Retry Executor

Generic retry loop for remote operations.

Each attempt invokes the operation. Success returns immediately. A
failure the classifier deems non-transient propagates at once; a
transient failure is followed by a backoff delay and another attempt,
until max_attempts is reached and the last error propagates.

Cancellation (asyncio.CancelledError) is never caught, so a cancelled
call is abandoned at its current suspension point and not retried.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import attrs
import structlog
from attrs import field, validators

from hsmsigner.core.types import RetryAttemptState
from hsmsigner.retry.backoff import ErrorClassifier, ExponentialBackoff, StatusCodeClassifier

logger = structlog.get_logger()

T = TypeVar("T")


@attrs.define
class RetryExecutor:
    """
    Retry policy bound to a backoff strategy and a classifier.

    Construct once and pass explicitly to the components that need it.

    Example:
        executor = RetryExecutor(
            backoff=ExponentialBackoff(min_delay=2, max_delay=30, delta_delay=3),
            classifier=StatusCodeClassifier(),
            max_attempts=3,
        )
        result = await executor.execute(lambda: client.call())
    """

    backoff: ExponentialBackoff = attrs.Factory(ExponentialBackoff)
    classifier: ErrorClassifier = attrs.Factory(StatusCodeClassifier)
    max_attempts: int = field(default=3, validator=[validators.instance_of(int), validators.ge(1)])
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` until success, a non-transient failure, or
        exhaustion of attempts.

        Args:
            operation: Zero-argument coroutine function, invoked once per attempt

        Returns:
            The first successful result

        Raises:
            The last error observed
        """
        state = RetryAttemptState()

        while True:
            state.attempt += 1
            try:
                return await operation()
            except Exception as e:
                state.record_failure(e)

                if not self.classifier.is_transient(e):
                    self._logger.debug(
                        "retry_not_transient",
                        attempt=state.attempt,
                        error=str(e),
                    )
                    raise

                if state.attempt >= self.max_attempts:
                    self._logger.warning(
                        "retry_exhausted",
                        attempts=state.attempt,
                        elapsed_delay=state.elapsed_delay,
                        error=str(e),
                    )
                    raise

                delay = self.backoff.delay(state.attempt - 1)
                self._logger.warning(
                    "retry_attempt_failed",
                    attempt=state.attempt,
                    max_attempts=self.max_attempts,
                    delay=delay,
                    error=str(e),
                )

            self._logger.debug("retry_backoff", attempt=state.attempt, delay=delay)
            await self.sleep(delay)
            state.record_delay(delay)
