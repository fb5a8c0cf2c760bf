"""Retry policy and the attempt loop around a transport call."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from .cancellation import CancellationToken, run_cancellable
from .config import DEFAULT_RETRYABLE_STATUS_CODES, BackoffStrategy, RequestConfig
from .errors import normalize_error
from .exceptions import ApiError, ApiValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.1


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ApiValidationError("retries must be non-negative")
        if self.base_delay < 0:
            raise ApiValidationError("retry_delay must be non-negative")

    @classmethod
    def from_config(cls, config: RequestConfig) -> "RetryPolicy":
        return cls(
            max_retries=int(config.retries if config.retries is not None else 0),
            base_delay=float(config.retry_delay if config.retry_delay is not None else 0.0),
            strategy=BackoffStrategy(config.retry_strategy or BackoffStrategy.EXPONENTIAL),
            retryable_status_codes=frozenset(config.retryable_status_codes or ()),
        )

    def compute_delay(self, attempt: int, *, rng: Callable[[], float] = random.random) -> float:
        """Seconds to wait after failed attempt ``attempt`` (zero based)."""
        if self.strategy is BackoffStrategy.IMMEDIATE:
            return 0.0
        if self.strategy is BackoffStrategy.FIXED:
            return self.base_delay
        delay = self.base_delay * (2 ** attempt)
        return delay + rng() * JITTER_RATIO * delay

    def should_retry(self, error: ApiError) -> bool:
        if error.retryable:
            return True
        return error.status is not None and error.status in self.retryable_status_codes


class RetryScheduler:
    """Runs a call up to ``max_retries + 1`` times, sleeping between attempts."""

    def __init__(
        self,
        policy: RetryPolicy,
        *,
        cancel_token: CancellationToken | None = None,
        description: str = "request",
    ) -> None:
        self.policy = policy
        self.cancel_token = cancel_token
        self.description = description
        self.attempts = 0

    def _next_delay(self, attempt: int, exc: Exception) -> float:
        error = normalize_error(exc)
        if attempt >= self.policy.max_retries or not self.policy.should_retry(error):
            if error is exc:
                raise error
            raise error from exc
        delay = self.policy.compute_delay(attempt)
        logger.warning(
            "Retrying %s in %.3fs (attempt %d of %d): %s",
            self.description,
            delay,
            attempt + 1,
            self.policy.max_retries,
            error,
        )
        return delay

    def run(self, call: Callable[[], T]) -> T:
        for attempt in range(self.policy.max_retries + 1):
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            self.attempts += 1
            try:
                return call()
            except Exception as exc:
                delay = self._next_delay(attempt, exc)
            if self.cancel_token is not None:
                self.cancel_token.wait(delay)
                self.cancel_token.raise_if_cancelled()
            else:
                time.sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover

    async def arun(self, call: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(self.policy.max_retries + 1):
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            self.attempts += 1
            try:
                return await call()
            except Exception as exc:
                delay = self._next_delay(attempt, exc)
            await run_cancellable(asyncio.sleep(delay), self.cancel_token)
        raise AssertionError("unreachable")  # pragma: no cover
