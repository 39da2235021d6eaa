"""Bounded exponential-backoff retry for platform API calls.

The executor knows nothing about the operation it wraps. It only decides,
from the raised exception, whether another attempt could succeed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from config import Settings, get_settings
from services.errors import ApiError, NotConfiguredError, NotFoundError, QuotaExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Message fragments that mark a non-platform error as not worth retrying
CRITICAL_ERROR_PATTERNS = [
    "quota",
    "forbidden",
    "unauthorized",
    "403",
    "401",
    "not found",
]

CRITICAL_STATUS_CODES = {401, 403, 404}


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration. Delays are in seconds."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            backoff_multiplier=settings.retry_backoff_multiplier,
        )


def compute_delay(policy: RetryPolicy, retry_index: int) -> float:
    """Delay before retry number `retry_index` (1 = the second attempt)."""
    return min(
        policy.max_delay,
        policy.base_delay * (policy.backoff_multiplier ** (retry_index - 1)),
    )


def is_critical_error(error: BaseException) -> bool:
    """Check if an error should abort retrying immediately.

    Platform errors are classified by type and HTTP status only, since
    their text carries part of the response body.
    """
    if isinstance(error, (NotFoundError, QuotaExceededError, NotConfiguredError)):
        return True
    if isinstance(error, ApiError):
        return error.status_code in CRITICAL_STATUS_CODES
    error_str = str(error).lower()
    return any(pattern in error_str for pattern in CRITICAL_ERROR_PATTERNS)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run `operation` up to `policy.max_retries + 1` times.

    Critical errors are re-raised at once. Other errors are retried after
    a deterministic backoff delay; the last one is re-raised when attempts
    run out.
    """
    total_attempts = policy.max_retries + 1

    for attempt in range(1, total_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if is_critical_error(e):
                logger.error(f"{label}: critical error on attempt {attempt}, not retrying: {e}")
                raise

            if attempt >= total_attempts:
                logger.error(f"{label}: failed after {total_attempts} attempts: {e}")
                raise

            delay = compute_delay(policy, attempt)
            logger.warning(
                f"{label}: attempt {attempt}/{total_attempts} failed, "
                f"retrying in {delay:.1f}s: {e}"
            )
            await sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover
