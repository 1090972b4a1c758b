"""Bounded retry with exponential backoff for Jira calls and sync activities."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from jirasync.core.config import settings
from jirasync.core.exceptions import JiraClientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, JiraClientError):
        return exc.retryable
    return False


@dataclass
class RetryPolicy:
    """Retry ``fn`` while it fails with a retryable error.

    Only ``JiraClientError`` instances classified as retryable are retried by
    default; anything else propagates on the first attempt.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: bool = True
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    should_retry: Callable[[BaseException], bool] = field(default=is_retryable, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got: {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def delay_for(self, attempt: int, exc: BaseException | None = None) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        if self.jitter:
            delay = random.uniform(0, delay)
        retry_after = getattr(exc, "retry_after", None)
        if isinstance(retry_after, (int, float)) and retry_after > 0:
            delay = max(delay, min(float(retry_after), self.max_delay))
        return delay

    def call(self, fn: Callable[[], T], *, description: str = "call") -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.should_retry(exc):
                    raise
                delay = self.delay_for(attempt, exc)
                logger.warning(
                    "%s failed (attempt %s/%s), retrying in %.2fs: %s",
                    description,
                    attempt,
                    self.max_attempts,
                    delay,
                    exc,
                )
                self.sleep(delay)
        raise RuntimeError("unreachable")  # pragma: no cover


def fetch_retry_policy() -> RetryPolicy:
    """Per-call policy used inside activities around search and detail fetches."""
    return RetryPolicy(
        max_attempts=settings.JIRA_FETCH_MAX_ATTEMPTS,
        base_delay=settings.JIRA_FETCH_BASE_DELAY_SECONDS,
        max_delay=settings.JIRA_FETCH_MAX_DELAY_SECONDS,
    )


def activity_retry_policy() -> RetryPolicy:
    """Whole-activity policy used by the workflow driver."""
    return RetryPolicy(
        max_attempts=settings.SYNC_ACTIVITY_MAX_ATTEMPTS,
        base_delay=settings.SYNC_ACTIVITY_BASE_DELAY_SECONDS,
        max_delay=settings.SYNC_ACTIVITY_MAX_DELAY_SECONDS,
    )
