"""Retry utilities with exponential backoff."""

import logging
import time
from functools import wraps
from typing import Any, Callable, TypeVar

import requests


logger = logging.getLogger(__name__)

# Type variable for generic function signatures
F = TypeVar("F", bound=Callable[..., Any])

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


def exponential_backoff_retry(
    max_retries: int = 2,
    delays: list[float] | None = None,
) -> Callable[[F], F]:
    """Decorator for exponential backoff retry of HTTP calls (0.5s, 1s).

    Retries on rate limits (429) and transient server errors (5xx) raised
    as requests.HTTPError. Other errors propagate immediately.

    Args:
        max_retries: Maximum number of retry attempts (default: 2).
        delays: List of delay seconds between retries (default: [0.5, 1.0]).

    Returns:
        Callable: Decorated function with retry logic.

    Examples:
        >>> @exponential_backoff_retry()
        ... def fetch_location():
        ...     # HTTP call here
        ...     pass
    """
    if delays is None:
        delays = [0.5, 1.0]

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except requests.HTTPError as e:
                    status_code = e.response.status_code if e.response is not None else None
                    if status_code in RETRYABLE_STATUS_CODES and attempt < max_retries:
                        delay = delays[min(attempt, len(delays) - 1)]
                        logger.info(f"HTTP error {status_code}, retrying in {delay}s...")
                        time.sleep(delay)
                        continue
                    # Non-retryable error or retries exhausted
                    raise
            raise RuntimeError(
                f"Max retries ({max_retries}) exhausted for {func.__name__}"
            )

        return wrapper  # type: ignore

    return decorator
