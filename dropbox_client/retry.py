"""
Retrying network operations that failed for transient reasons.
"""

import logging
import time
from typing import Callable, TypeVar

from .exceptions import TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """Whether `error` is a network-level failure worth another try."""
    return isinstance(error, TransientNetworkError)


def run_with_retry(max_retries: int, operation: Callable[[], T], delay: float = 0.0) -> T:
    """
    Run `operation`, retrying it on transient network errors.

    The operation runs at most `max_retries + 1` times. Anything it returns
    is passed straight back, whatever it means; only TransientNetworkError
    triggers another attempt. Every other exception propagates at once.

    Args:
        max_retries: Retries allowed after the first attempt.
        operation: Zero-argument callable performing one network exchange.
        delay: Seconds to wait between attempts (default: retry immediately).

    Raises:
        TransientNetworkError: The last failure, once retries are used up.
    """
    if max_retries < 0:
        raise ValueError(f"'max_retries' must be >= 0, got {max_retries}")

    attempts = max_retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except TransientNetworkError as e:
            if attempt == attempts:
                logger.warning("⚠ Network error, giving up after %d attempts: %s", attempts, e)
                raise
            logger.warning("⚠ Network error (attempt %d/%d): %s. Retrying...", attempt, attempts, e)
            if delay:
                time.sleep(delay)

    raise AssertionError("unreachable")


class RetryPolicy:
    """A retry budget that can be handed around and reused."""

    def __init__(self, max_retries: int = 3, delay: float = 0.0):
        if max_retries < 0:
            raise ValueError(f"'max_retries' must be >= 0, got {max_retries}")
        self.max_retries = max_retries
        self.delay = delay

    def run(self, operation: Callable[[], T]) -> T:
        return run_with_retry(self.max_retries, operation, self.delay)

    def __repr__(self):
        return f"RetryPolicy(max_retries={self.max_retries}, delay={self.delay})"
