"""
Time helpers for SQL Diagnostic Tool.

Two clocks are in play:

- Wall clock, always UTC and rendered with a "Z" suffix. Used for outcome
  timestamps, pack manifests and run IDs.
- A monotonic millisecond clock for elapsed times, unaffected by NTP or
  daylight-saving adjustments. The execution engine takes it as an
  injectable dependency.

Examples:
    >>> utc_timestamp()
    '2025-11-02T08:30:45Z'
    >>> run_id_from_timestamp()
    '2025-11-02T08-30-45Z'
"""

import time
from datetime import UTC, datetime

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
RUN_ID_FORMAT = "%Y-%m-%dT%H-%M-%SZ"


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


def utc_timestamp() -> str:
    """Current UTC time as YYYY-MM-DDTHH:MM:SSZ."""
    return utc_now().strftime(TIMESTAMP_FORMAT)


def run_id_from_timestamp(dt: datetime | None = None) -> str:
    """
    Run directory name for a moment in time (now by default).

    Colons are replaced with hyphens so the ID is a valid directory name on
    Windows; lexical order equals chronological order.

    Raises:
        ValueError: If dt is naive

    Example:
        >>> run_id_from_timestamp(datetime(2025, 11, 2, 8, 30, 45, tzinfo=UTC))
        '2025-11-02T08-30-45Z'
    """
    moment = utc_now() if dt is None else dt
    if moment.tzinfo is None:
        raise ValueError(
            f"run_id_from_timestamp() needs a timezone-aware datetime, got {moment!r}"
        )
    return moment.strftime(RUN_ID_FORMAT)


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse a "Z" suffixed UTC timestamp produced by utc_timestamp().

    Raises:
        ValueError: If the suffix is missing or the value is not ISO 8601
    """
    if not timestamp_str.endswith("Z"):
        raise ValueError(f"Timestamp must end with 'Z' (UTC): {timestamp_str!r}")

    try:
        return datetime.fromisoformat(timestamp_str[:-1] + "+00:00")
    except ValueError as e:
        raise ValueError(f"Invalid ISO 8601 timestamp: {timestamp_str!r}") from e


def monotonic_ms() -> int:
    """Monotonic clock reading in whole milliseconds."""
    return time.monotonic_ns() // 1_000_000
