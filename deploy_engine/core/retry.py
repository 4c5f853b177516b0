# deploy_engine/core/retry.py
"""Bounded retry on optimistic-concurrency conflicts."""

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from deploy_engine.config import settings
from deploy_engine.core.errors import ApplicationConflictError, RetryLimitExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_on_conflict(
    fn: Callable[[], T],
    max_attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
    factor: Optional[float] = None,
    jitter: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run fn until it stops raising ApplicationConflictError.

    fn must perform the whole read-modify-write cycle so every attempt starts
    from a fresh read. Any other exception propagates immediately. After
    max_attempts conflicts, RetryLimitExceeded is raised from the last one.
    """
    attempts = max_attempts if max_attempts is not None else settings.retry_max_attempts
    delay = backoff_seconds if backoff_seconds is not None else settings.retry_backoff_seconds
    factor = factor if factor is not None else settings.retry_backoff_factor
    jitter = jitter if jitter is not None else settings.retry_jitter

    last_conflict: Optional[ApplicationConflictError] = None
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except ApplicationConflictError as e:
            last_conflict = e
            logger.info(f"[retry] conflict on attempt {attempt}/{attempts}: {e}")
            if attempt == attempts:
                break
            sleep(delay + delay * jitter * random.random())
            delay *= factor

    raise RetryLimitExceeded(
        f"gave up after {attempts} conflicting attempts: {last_conflict}"
    ) from last_conflict
