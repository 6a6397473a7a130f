"""Retry with exponential backoff for rate-limited backend calls.

Only `TransientBackendError` (HTTP 429 rate limiting) is retried. Every
other failure propagates on the first attempt, since replaying a bad
request or an authentication failure only burns budget.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from ...config import GenerationSettings
from ..backend.base import CancellationError, RetryExhaustedError, TransientBackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry strategy.

    Attributes:
        max_attempts: Total attempts per operation, including the first.
        base_delay: Delay before the first retry (seconds); doubles per retry.
        jitter: Add uniform jitter in [0, delay/2) to each wait.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    @classmethod
    def from_settings(cls, settings: GenerationSettings) -> "RetryConfig":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )


class RetryController:
    """Runs async operations with bounded exponential-backoff retry.

    The backoff sleep is the only suspension point the controller adds, and
    no further attempt is made once it is cancelled. A cancelled task sees
    its own CancelledError so that ``asyncio.timeout`` and task groups keep
    working. `CancellationError` is raised only when the sleep was cancelled
    without the task itself being cancelled.

    ``sleep`` and ``rng`` are injectable so tests can observe waits without
    real delays.

    Example:
        >>> controller = RetryController(RetryConfig(max_attempts=3, base_delay=2.0))
        >>> text = await controller.execute(lambda: client.generate(prompt), name="generate")
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: SleepFunc | None = None,
        rng: random.Random | None = None,
    ):
        self._config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self.retries = 0
        self.total_wait = 0.0

    @property
    def config(self) -> RetryConfig:
        return self._config

    def get_backoff_delay(self, attempt: int) -> float:
        """Base backoff delay before retrying after attempt ``attempt``.

        Args:
            attempt: 0-based index of the attempt that just failed.

        Returns:
            ``base_delay * 2**attempt`` seconds, without jitter.
        """
        return self._config.base_delay * (2**attempt)

    def get_jitter(self, delay: float) -> float:
        """Random jitter drawn uniformly from [0, delay/2)."""
        if not self._config.jitter or delay <= 0:
            return 0.0
        return self._rng.random() * (delay / 2)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Whether a failure on 0-based ``attempt`` warrants another try."""
        if attempt + 1 >= self._config.max_attempts:
            return False
        return isinstance(error, TransientBackendError)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        name: str = "operation",
    ) -> T:
        """Run ``operation`` until it succeeds or the retry budget is spent.

        Args:
            operation: Zero-argument callable returning a fresh awaitable
                for each attempt.
            name: Label used in logs and errors.

        Returns:
            The operation's result.

        Raises:
            RetryExhaustedError: Transient failures on every attempt.
            CancelledError: The task was cancelled while waiting to retry.
            CancellationError: The backoff sleep was cancelled on its own.
            Exception: Any non-transient error, unchanged, on first occurrence.
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except TransientBackendError as e:
                if not self.should_retry(e, attempt):
                    raise RetryExhaustedError(name, attempt + 1, e) from e

                delay = self.get_backoff_delay(attempt)
                wait = delay + self.get_jitter(delay)
                retry_after = getattr(e, "retry_after", None)
                if retry_after is not None and retry_after > wait:
                    wait = retry_after

                logger.warning(
                    "Rate limit hit for %s, retrying after %.2fs (attempt %d/%d)",
                    name,
                    wait,
                    attempt + 1,
                    self._config.max_attempts,
                )
                self.retries += 1
                self.total_wait += wait
                try:
                    await self._sleep(wait)
                except asyncio.CancelledError as cancelled:
                    current = asyncio.current_task()
                    if current is not None and current.cancelling():
                        raise
                    raise CancellationError(
                        f"{name} cancelled while waiting to retry"
                    ) from cancelled
                attempt += 1


__all__ = ["RetryConfig", "RetryController"]
