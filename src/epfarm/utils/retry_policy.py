"""Capped exponential backoff shared by source adapters and the scheduler."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_any,
    wait_exponential,
)
from tenacity.stop import stop_base

from epfarm.errors import IdentityNotFound, RateLimitError
from epfarm.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_NON_RETRYABLE = (IdentityNotFound, RateLimitError)


def is_transient_error(exc: BaseException) -> bool:
    """Return True when an exception is worth retrying against the same identity."""
    return not isinstance(exc, _NON_RETRYABLE)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for a generic "retry with backoff" helper.

    Attributes:
        max_attempts: Total attempts including the first call.
        base_delay: Delay in seconds before the second attempt.
        cap_delay: Upper bound for any single delay.
        sleep: Sleep function, injectable for tests.
        stop_requested: Optional shutdown check; once it returns True no
            further attempt is made.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    cap_delay: float = 8.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)
    stop_requested: Callable[[], bool] | None = field(default=None, compare=False, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Return the delay after the given 1-based failed attempt."""
        if attempt < 1:
            return 0.0
        return min(self.cap_delay, self.base_delay * (2 ** (attempt - 1)))

    def _stop_condition(self) -> stop_base:
        attempts = stop_after_attempt(max(self.max_attempts, 1))
        if self.stop_requested is None:
            return attempts
        stop_requested = self.stop_requested
        return stop_any(attempts, lambda _state: stop_requested())

    def retrying(self, log: logging.Logger | None = None) -> Retrying:
        """Build a tenacity controller for this policy."""
        return Retrying(
            retry=retry_if_exception(is_transient_error),
            stop=self._stop_condition(),
            wait=wait_exponential(multiplier=self.base_delay, max=self.cap_delay),
            sleep=self.sleep,
            reraise=True,
            before_sleep=before_sleep_log(log or logger, logging.WARNING),
        )

    def call(self, fn: Callable[..., T], *args: object, **kwargs: object) -> T:
        """Invoke ``fn`` and retry transient failures with capped backoff."""
        return self.retrying()(fn, *args, **kwargs)
