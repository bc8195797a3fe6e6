"""
SQL Server version resolution for query packs.

Maps whatever version indicator the caller has (a release year, an engine
major version such as 15, or a product version string such as
"15.0.2000.5") to the canonical key of one query pack, and orders pack keys
so that a not-newer substitute can be chosen when the exact pack is missing.

Version keys are strings: a release year ("2019") optionally followed by an
edition/service-pack suffix ("2016SP2", "2008R2"). Keys order by
(year, suffix rank): a bare year sorts before its suffixed variants.

All functions here are pure and total; unrecognized input degrades to the
baseline key instead of raising.

Example:
    >>> resolve(15)
    '2019'
    >>> resolve("16.0.1000.6")
    '2022'
    >>> closest_available("2017", {"2012", "2016", "2019"})
    '2016'
"""

import re
from collections.abc import Iterable

# Key used when the indicator cannot be mapped to anything
BASELINE_KEY = "2019"

# Engine major version -> release year, highest first
INTERNAL_VERSION_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (17, "2025"),
    (16, "2022"),
    (15, "2019"),
    (14, "2017"),
    (13, "2016"),
    (12, "2014"),
    (11, "2012"),
    (10, "2008"),
    (9, "2005"),
)

# Canonical release years a bare-year indicator can snap to
CANONICAL_YEARS: tuple[int, ...] = (2005, 2008, 2012, 2014, 2016, 2017, 2019, 2022, 2025)

# Every key for which a pack exists upstream
KNOWN_KEYS: tuple[str, ...] = (
    "2025",
    "2022",
    "2019",
    "2017",
    "2016SP2",
    "2016",
    "2014",
    "2012",
    "2008STD",
    "2008R2",
    "2008",
    "2005",
)

# Integers at or above this are read as release years, not engine versions
_YEAR_LIKE_FLOOR = 1990

_LEADING_INT = re.compile(r"^\s*(-?\d+)")
_KEY_PATTERN = re.compile(r"^(\d{4})([A-Za-z0-9]*)$")


def resolve(indicator: int | str | None) -> str:
    """
    Map a version indicator to a canonical pack key.

    Resolution order:
    1. A string exactly matching a known key ("2016SP2") is returned as-is.
    2. The leading integer is extracted ("15.0.2000.5" -> 15).
    3. Year-like integers snap to the newest canonical year not newer than
       them; years older than the oldest supported release get the baseline.
    4. Engine major versions go through INTERNAL_VERSION_THRESHOLDS.
    5. Anything else resolves to BASELINE_KEY.

    Args:
        indicator: Release year, engine major version, product version string

    Returns:
        Canonical version key, never raises

    Examples:
        >>> resolve(2022)
        '2022'
        >>> resolve(2018)
        '2017'
        >>> resolve(10)
        '2008'
        >>> resolve(-3)
        '2019'
        >>> resolve("not a version")
        '2019'
    """
    if isinstance(indicator, bool) or indicator is None:
        return BASELINE_KEY

    if isinstance(indicator, str):
        stripped = indicator.strip()
        for key in KNOWN_KEYS:
            if stripped.upper() == key.upper():
                return key
        match = _LEADING_INT.match(stripped)
        if not match:
            return BASELINE_KEY
        number = int(match.group(1))
    elif isinstance(indicator, int):
        number = indicator
    else:
        return BASELINE_KEY

    if number >= _YEAR_LIKE_FLOOR:
        for year in reversed(CANONICAL_YEARS):
            if number >= year:
                return str(year)
        return BASELINE_KEY

    for threshold, key in INTERNAL_VERSION_THRESHOLDS:
        if number >= threshold:
            return key

    return BASELINE_KEY


def key_year(key: str) -> int:
    """
    Return the year component of a version key.

    Raises:
        ValueError: If the key does not start with a four-digit year
    """
    match = _KEY_PATTERN.match(str(key))
    if not match:
        raise ValueError(f"Invalid version key: {key!r}")
    return int(match.group(1))


def version_sort_key(key: str) -> tuple[int, int, str]:
    """
    Sort key giving the total order over version keys.

    Bare years rank below suffixed keys of the same year, suffixes compare
    case-insensitively: 2008 < 2008R2 < 2008STD < 2012.
    """
    match = _KEY_PATTERN.match(str(key))
    if not match:
        raise ValueError(f"Invalid version key: {key!r}")
    suffix = match.group(2).upper()
    return (int(match.group(1)), 1 if suffix else 0, suffix)


def sort_keys_newest_first(keys: Iterable[str]) -> list[str]:
    """Return keys ordered newest to oldest."""
    return sorted(set(keys), key=version_sort_key, reverse=True)


def closest_available(target: str, available_keys: Iterable[str]) -> str | None:
    """
    Pick the best substitute for target from the keys that actually exist.

    Returns the greatest available key whose year is not newer than the
    target's year. If every available key is newer, the oldest available key
    is returned as a last resort. Returns None when nothing is available.

    Examples:
        >>> closest_available("2017", {"2012", "2016", "2019"})
        '2016'
        >>> closest_available("2005", {"2012", "2016", "2019"})
        '2012'
        >>> closest_available("2019", set()) is None
        True
    """
    ordered = sort_keys_newest_first(available_keys)
    if not ordered:
        return None

    target_year = key_year(target)
    for key in ordered:
        if key_year(key) <= target_year:
            return key

    return ordered[-1]


def fallback_chain(target: str, available_keys: Iterable[str]) -> list[str]:
    """
    Ordered substitutes for target: available keys no newer than it.

    Newest first, the target itself excluded.

    Example:
        >>> fallback_chain("2017", {"2012", "2016", "2017", "2019"})
        ['2016', '2012']
    """
    target_year = key_year(target)
    return [
        key
        for key in sort_keys_newest_first(available_keys)
        if key != target and key_year(key) <= target_year
    ]
