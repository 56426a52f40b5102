"""Retry utilities for network operations with exponential backoff"""

import logging
import random
import time
from enum import Enum
from functools import wraps
from typing import Callable, List, Optional, Tuple, TypeVar

import requests

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableErrorType(Enum):
    """Types of errors that should trigger retries"""

    NETWORK = "network"  # Connection errors, timeouts
    TEMPORARY = "temporary"  # 5xx errors, rate limiting
    PERMANENT = "permanent"  # 4xx errors (except rate limiting), auth failures


def _status_code_of(error: Exception) -> Optional[int]:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def is_retryable_error(error: Exception, error_message: str = "") -> Tuple[bool, RetryableErrorType]:
    """Determine if an error is retryable and what type it is

    Args:
        error: The exception that occurred
        error_message: Optional error message string

    Returns:
        Tuple of (is_retryable, error_type)
    """
    # requests exceptions carry enough structure to decide without string matching
    if isinstance(error, (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError)):
        return True, RetryableErrorType.NETWORK

    status_code = _status_code_of(error)
    if status_code is not None:
        if status_code == 429 or status_code >= 500:
            return True, RetryableErrorType.TEMPORARY
        return False, RetryableErrorType.PERMANENT

    # Invalid URLs, schemes, headers: the request can never succeed
    if isinstance(error, requests.RequestException):
        return False, RetryableErrorType.PERMANENT

    combined = f"{error} {error_message}".lower()

    # Network/connection errors - always retryable
    network_indicators = [
        "connection",
        "timeout",
        "timed out",
        "network",
        "dns",
        "resolve",
        "refused",
        "unreachable",
        "reset",
        "broken pipe",
        "no route to host",
        "temporary failure",
    ]
    if any(indicator in combined for indicator in network_indicators):
        return True, RetryableErrorType.NETWORK

    # Rate limiting - retryable
    if "429" in combined or "rate limit" in combined or "too many requests" in combined:
        return True, RetryableErrorType.TEMPORARY

    # Auth errors - not retryable (won't fix itself)
    if "401" in combined or "403" in combined or "unauthorized" in combined or "forbidden" in combined:
        return False, RetryableErrorType.PERMANENT

    # 404 errors - not retryable (resource doesn't exist)
    if "404" in combined or "not found" in combined:
        return False, RetryableErrorType.PERMANENT

    # Unknown errors - default to retryable
    return True, RetryableErrorType.TEMPORARY


def compute_delay(
    attempt: int,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """Delay before retry number attempt + 1 (attempt is 0-based)."""
    delay = min(initial_delay * (exponential_base**attempt), max_delay)

    if jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay = delay + random.uniform(-jitter_amount, jitter_amount)
        delay = max(0.1, delay)

    return delay


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_errors: Optional[List[RetryableErrorType]] = None,
) -> Callable:
    """Decorator for retrying functions with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        initial_delay: Initial delay in seconds before first retry (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 30.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        jitter: Add random jitter to prevent thundering herd (default: True)
        retryable_errors: List of error types to retry (None = retry all retryable types)

    Returns:
        Decorator function
    """
    if retryable_errors is None:
        retryable_errors = [RetryableErrorType.NETWORK, RetryableErrorType.TEMPORARY]

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_retries + 1):
                try:
                    result = func(*args, **kwargs)
                    if attempt > 0:
                        logger.info(f"{func.__name__} succeeded on attempt {attempt + 1}")
                    return result

                except Exception as e:
                    is_retryable, error_type = is_retryable_error(e)

                    # Check if this error type should be retried
                    if not is_retryable or error_type not in retryable_errors:
                        logger.debug(f"{func.__name__} failed with non-retryable error ({error_type.value}): {e}")
                        raise

                    # If this was the last attempt, raise the error
                    if attempt >= max_retries:
                        logger.error(
                            f"{func.__name__} failed after {max_retries + 1} attempts. "
                            f"Last error ({error_type.value}): {e}"
                        )
                        raise

                    delay = compute_delay(attempt, initial_delay, max_delay, exponential_base, jitter)

                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{max_retries + 1} "
                        f"({error_type.value} error: {e}). "
                        f"Retrying in {delay:.2f}s..."
                    )

                    time.sleep(delay)

            # max_retries < 0 means the loop never ran
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")

        return wrapper

    return decorator
