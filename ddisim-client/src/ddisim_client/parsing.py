"""Pure helpers for interpreting DDI payloads.

None of these functions perform I/O.
"""

from __future__ import annotations

import re

DEFAULT_POLLING_INTERVAL = 60
"""Polling interval in seconds used when the server value is malformed."""

ACTION_RESOURCES = ("deploymentBase", "cancelAction")

# ASCII only: str.isdigit() also accepts characters int() rejects, such as "²".
_DIGITS = re.compile(r"[0-9]+")

_KB = 1024
_MB = 1024 * 1024


def extract_action_id(href: str, resource: str | tuple[str, ...] = ACTION_RESOURCES) -> str | None:
    """Extract the numeric action ID from a link URL.

    Args:
        href: Link URL, e.g. ".../controller/v1/dev-01/deploymentBase/42?c=-2129030598".
        resource: Resource name, or names, that must precede the ID.

    Returns:
        The ID as a string of digits, or None if the URL does not match.

    Example:
        >>> extract_action_id("http://host/default/controller/v1/dev/cancelAction/7")
        '7'
        >>> extract_action_id("http://host/x/confirmationBase/3", "confirmationBase")
        '3'
    """
    names = (resource,) if isinstance(resource, str) else resource
    pattern = "(?:" + "|".join(re.escape(name) for name in names) + r")/(\d+)"
    match = re.search(pattern, href)
    return match.group(1) if match else None


def parse_polling_interval(sleep: str) -> int:
    """Parse an HH:MM:SS polling interval into seconds.

    Args:
        sleep: Interval string as advertised by the server.

    Returns:
        Total seconds, or DEFAULT_POLLING_INTERVAL if the string is not three
        colon-separated non-negative integers or adds up to zero.
    """
    parts = [part.strip() for part in sleep.split(":")]
    if len(parts) != 3 or not all(_DIGITS.fullmatch(part) for part in parts):
        return DEFAULT_POLLING_INTERVAL

    hours, minutes, seconds = (int(part) for part in parts)
    total = hours * 3600 + minutes * 60 + seconds
    return total if total > 0 else DEFAULT_POLLING_INTERVAL


def format_size(num_bytes: int) -> str:
    """Format a byte count for log output ("512B", "1.5KB", "2.0MB")."""
    if num_bytes < _KB:
        return f"{num_bytes}B"
    if num_bytes < _MB:
        return f"{num_bytes / _KB:.1f}KB"
    return f"{num_bytes / _MB:.1f}MB"
