"""TTL string helpers.

A TTL is written as ``<count><unit>`` where unit is one of ``m h d w M y``.
A bare integer means minutes.
"""

from typing import Tuple

from common.constants import TTL_UNITS, DEFAULT_TTL_UNIT
from common.exceptions import InvalidTTLError


def parse_ttl(ttl: str) -> Tuple[int, str]:
    """
    Split a TTL string into its count and unit.

    Args:
        ttl: TTL string such as "3m", "26w" or "15"

    Returns:
        Tuple of (count, unit)

    Raises:
        InvalidTTLError: If the string is empty or malformed
    """
    if not ttl:
        raise InvalidTTLError("TTL cannot be empty")

    unit = ttl[-1]
    count_str = ttl[:-1]
    if unit.isdigit():
        count_str = ttl
        unit = DEFAULT_TTL_UNIT
    elif unit not in TTL_UNITS:
        raise InvalidTTLError(f"Invalid TTL unit '{unit}' in '{ttl}' (expected one of {TTL_UNITS})")

    if not count_str.isdigit():
        raise InvalidTTLError(f"Invalid TTL count in '{ttl}'")

    return int(count_str), unit


def adjust_ttl(ttl: str) -> str:
    """
    Extend a TTL by one unit.

    Chunks are stored with the adjusted TTL so they outlive the manifest
    that references them.

    Args:
        ttl: TTL string, may be empty

    Returns:
        TTL one unit longer, or "" when ttl is empty
    """
    if not ttl:
        return ""

    count, unit = parse_ttl(ttl)
    return f"{count + 1}{unit}"


def sanitize_ttl(url: str, ttl: str) -> str:
    """Append ``ttl=<ttl>`` to url unless ttl is empty or already present."""
    if not ttl:
        return url

    if "ttl" in url:
        return url

    separator = "&" if "?" in url else "?"
    return f"{url}{separator}ttl={ttl}"
