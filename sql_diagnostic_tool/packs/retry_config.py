"""
Retry configuration for remote query pack downloads.

Pack downloads go to a file-sharing host that occasionally drops
connections or answers with 429/5xx under load. Transient failures are
retried a small number of times with exponential backoff using tenacity;
permanent failures (404, 403) fail fast so the fallback chain can move on to
the next candidate without delay.

Example:
    >>> from sql_diagnostic_tool.packs.retry_config import create_fetch_retry_decorator
    >>> @create_fetch_retry_decorator()
    ... def download():
    ...     ...
"""

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

# ============================================================================
# RETRY CONSTANTS
# ============================================================================

# Total attempts per download (1 initial + 1 retry)
MAX_ATTEMPTS = 2

# Backoff multiplier in seconds: waits 1s, 2s, 4s, ... between attempts
BACKOFF_SECONDS = 1.0

# Cap on a single backoff wait
MAX_WAIT_SECONDS = 10

# HTTP status codes that should trigger a retry
RETRY_STATUS_CODES = frozenset([429, 500, 502, 503, 504])

# HTTP request timeout in seconds, applied to each attempt
REQUEST_TIMEOUT = 30.0

# Fixed user agent; the pack host rejects some default client agents
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

# ============================================================================
# RETRY DECORATOR FACTORY
# ============================================================================


def create_fetch_retry_decorator(
    max_attempts: int = MAX_ATTEMPTS,
    backoff_seconds: float = BACKOFF_SECONDS,
):
    """
    Create a tenacity retry decorator for pack downloads.

    Retries on:
    - httpx.TransportError (connect errors, read timeouts, dropped connections)
    - httpx.HTTPStatusError (the wrapped call raises it only for
      RETRY_STATUS_CODES)

    Args:
        max_attempts: Total attempts including the first one (>= 1)
        backoff_seconds: Exponential backoff multiplier; 0 disables waiting

    Returns:
        Retry decorator that reraises the last exception after all attempts
    """
    return retry(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=backoff_seconds, max=MAX_WAIT_SECONDS),
        retry=retry_if_exception_type(
            (
                httpx.HTTPStatusError,
                httpx.TransportError,
            )
        ),
        reraise=True,
    )
