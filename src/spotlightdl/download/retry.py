"""
Bounded retry wrapper shared by API calls and asset downloads.
"""

import time
from typing import Callable, Optional, TypeVar

from spotlightdl.constants import RETRY_BACKOFF_SECONDS
from spotlightdl.log_utils import logger

T = TypeVar("T")


def with_retry(
    attempts: int,
    operation: Callable[[], T],
    *,
    delay: float = RETRY_BACKOFF_SECONDS,
    sleep: Optional[Callable[[float], None]] = None,
    description: Optional[str] = None,
) -> T:
    """
    Run `operation` up to `attempts` times, waiting a fixed delay between failures.

    Any exception raised by `operation` triggers a retry while attempts remain. Once the
    attempts are exhausted, the exception from the last attempt propagates unchanged.

    Parameters:
        attempts (int): Total number of invocations allowed; 1 disables retrying.
        operation (Callable[[], T]): Zero-argument callable to invoke.
        delay (float): Seconds to wait before each retry.
        sleep (Callable[[float], None] | None): Sleep function; defaults to time.sleep.
        description (str | None): Label used in retry log messages.

    Returns:
        T: The value returned by the first successful invocation.

    Raises:
        ValueError: If `attempts` is lower than 1.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")

    sleep = sleep or time.sleep
    label = description or getattr(operation, "__name__", "operation")
    remaining = attempts
    while True:
        remaining -= 1
        try:
            return operation()
        except Exception as e:
            if remaining <= 0:
                raise
            logger.warning(
                f"{label}: {type(e).__name__}: {e} - Waiting {delay:g} seconds before retrying "
                f"({remaining} attempt(s) left)..."
            )
            sleep(delay)
