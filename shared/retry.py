"""Bounded exponential backoff for capability calls.

The engine never retries on its own; request handlers wrap the calls they want
retried with :func:`call_with_retry`.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from shared.config import RetryConfig
from shared.errors import EngineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(error: Exception) -> bool:
    """Only engine errors that flag themselves as transient are retried."""
    return isinstance(error, EngineError) and error.retryable


def call_with_retry(
    fn: Callable[[], T],
    policy: Optional[RetryConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds, fails permanently, or attempts run out.

    Args:
        fn: Zero-argument callable to invoke.
        policy: Attempt count and backoff bounds.
        sleep: Injected for tests.

    Returns:
        Whatever ``fn`` returns on its first successful call.
    """
    policy = policy or RetryConfig()
    backoff = policy.initial_backoff_seconds

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e) or attempt == policy.max_attempts:
                raise
            logger.warning(
                f"Transient failure on attempt {attempt}/{policy.max_attempts}: "
                f"{e}. Retrying in {backoff:.2f}s"
            )
            sleep(backoff)
            backoff = min(backoff * 2, policy.max_backoff_seconds)

    # max_attempts is validated to be >= 1, so the loop always returns or raises
    raise RuntimeError("unreachable")
