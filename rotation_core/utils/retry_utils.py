"""
Retry helpers for read-only provisioning calls.

Only idempotent reads go through retry_read. Mutating calls are never
retried here: a failed create or destroy must be re-verified against
remote state by the caller first.
"""

import random
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from .logger import get_logger

T = TypeVar("T")


def calculate_exponential_backoff(
    retry_count: int,
    base_delay: float = 1,
    max_delay: float = 300,
    multiplier: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        retry_count: Current retry attempt (0-based)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        multiplier: Exponential multiplier
        jitter: Whether to add random jitter (+/-25%)

    Returns:
        Delay in seconds before next retry

    Example progression (base_delay=1, multiplier=2):
        retry_count=0: ~1s
        retry_count=1: ~2s
        retry_count=2: ~4s
        retry_count=3: ~8s
    """
    if retry_count < 0:
        retry_count = 0

    delay = base_delay * (multiplier**retry_count)
    delay = min(delay, max_delay)

    if jitter:
        jitter_range = delay * 0.25
        delay = delay + random.uniform(-jitter_range, jitter_range)
        # Don't go below the base_delay to maintain backoff progression
        delay = max(base_delay, min(delay, max_delay))

    return delay


def retry_read(
    func: Callable[[], T],
    retry_on: Tuple[Type[BaseException], ...],
    max_attempts: int,
    base_delay: float = 1,
    max_delay: float = 30,
    sleep: Callable[[float], None] = time.sleep,
    operation_name: Optional[str] = None,
) -> T:
    """
    Call a read-only function, retrying a bounded number of times on the given errors.

    The last error is re-raised unmodified once attempts are exhausted.
    """
    logger = get_logger()
    name = operation_name or getattr(func, "__name__", "read")

    attempt = 0
    while True:
        try:
            return func()
        except retry_on as e:
            attempt += 1
            if attempt >= max_attempts:
                logger.error(
                    f"{name} failed after {attempt} attempts",
                    extra={"operation": name, "attempts": attempt, "error": str(e)},
                )
                raise
            delay = calculate_exponential_backoff(
                retry_count=attempt - 1, base_delay=base_delay, max_delay=max_delay
            )
            logger.warning(
                f"{name} failed, retrying",
                extra={
                    "operation": name,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "delay_seconds": round(delay, 3),
                    "error": str(e),
                },
            )
            sleep(delay)
