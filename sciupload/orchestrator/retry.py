"""Bounded retry with linear backoff around a single transport call."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..errors import ConfigurationError, TransportError
from ..models import UploadOutcome

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF = 0.5
DEFAULT_MAX_BACKOFF = 10.0


@dataclass(frozen=True)
class AttemptResult:
    """Value or last error of a retried call, with the number of attempts made."""
    value: Any = None
    error: Optional[TransportError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class RetryPolicy:
    """
    Retry a transport operation up to max_retries + 1 times.

    SERVER_ERROR and NETWORK_ERROR are retried after a linearly growing delay;
    every other kind ends the call at once. Holds no state between calls.
    """

    def __init__(
        self,
        max_retries: int,
        backoff: float = DEFAULT_BACKOFF,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ConfigurationError(f"max_retries must not be negative, got {max_retries}")
        if backoff <= 0:
            raise ConfigurationError(f"backoff must be positive, got {backoff}")
        self.max_retries = max_retries
        self.backoff = backoff
        self.max_backoff = max(max_backoff, backoff)
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows the given 1-based attempt."""
        return min(self.backoff * attempt, self.max_backoff)

    async def call(
        self,
        operation: Callable[[], Awaitable[Any]],
        label: str = "operation",
    ) -> AttemptResult:
        max_attempts = self.max_retries + 1
        last_error: Optional[TransportError] = None

        for attempt in range(1, max_attempts + 1):
            try:
                value = await operation()
                return AttemptResult(value=value, attempts=attempt)
            except TransportError as exc:
                last_error = exc

            if not last_error.retryable:
                logger.debug(f"{label}: terminal {last_error.kind.value} on attempt {attempt}")
                return AttemptResult(error=last_error, attempts=attempt)

            if attempt < max_attempts:
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{label}: {last_error} (attempt {attempt}/{max_attempts}), retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        logger.warning(f"{label}: giving up after {max_attempts} attempts")
        return AttemptResult(error=last_error, attempts=max_attempts)

    async def attempt(
        self,
        operation: Callable[[], Awaitable[Any]],
        label: str = "upload",
    ) -> UploadOutcome:
        result = await self.call(operation, label=label)
        if result.ok:
            return UploadOutcome.succeeded(result.attempts)
        return UploadOutcome.failed(result.error, result.attempts)
