"""Compact duration parsing and rendering.

Durations travel through the API and settings as compact unit strings
(``100ms``, ``30s``, ``10m``, ``1h``, ``14d``). Rendering always picks the
largest unit that divides the value exactly, so ``timedelta(minutes=90)``
renders as ``90m`` and ``timedelta(hours=24)`` as ``1d``.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta

_UNITS: dict[str, timedelta] = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}

# Largest unit first for rendering
_RENDER_ORDER: tuple[tuple[str, int], ...] = (
    ("d", 86_400_000),
    ("h", 3_600_000),
    ("m", 60_000),
    ("s", 1_000),
    ("ms", 1),
)

_DURATION_PATTERN = re.compile(r"^\s*(-?\d+)\s*(ms|s|m|h|d)?\s*$")


def parse_duration(value: str | int) -> timedelta:
    """Parse a compact duration string.

    A bare number is accepted only for zero ("0" and 0 mean the zero
    duration), every other value needs a unit.

    Args:
        value: Compact duration such as "10m", or 0.

    Returns:
        Parsed duration.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, bool):
        raise ValueError(f"failed to parse duration [{value}]")
    if isinstance(value, int):
        if value == 0:
            return timedelta(0)
        raise ValueError(
            f"failed to parse duration [{value}]: a unit is required (ms, s, m, h, d)"
        )

    match = _DURATION_PATTERN.match(value)
    if match is None:
        raise ValueError(
            f"failed to parse duration [{value}]: expected <number><unit> with unit in "
            "ms, s, m, h, d"
        )

    amount = int(match.group(1))
    unit = match.group(2)
    if unit is None:
        if amount == 0:
            return timedelta(0)
        raise ValueError(
            f"failed to parse duration [{value}]: a unit is required (ms, s, m, h, d)"
        )
    return amount * _UNITS[unit]


def format_duration(value: timedelta) -> str:
    """Render a duration in its compact unit form.

    Sub-millisecond precision is dropped.

    Args:
        value: Duration to render.

    Returns:
        Compact string such as "10m" or "1h".
    """
    millis = value // timedelta(milliseconds=1)
    if millis == 0:
        return "0s"

    sign = "-" if millis < 0 else ""
    millis = abs(millis)
    for suffix, size in _RENDER_ORDER:
        if millis % size == 0:
            return f"{sign}{millis // size}{suffix}"
    return f"{sign}{millis}ms"  # pragma: no cover - "ms" always divides


def buckets_in(duration: timedelta, bucket_span: timedelta) -> int:
    """Number of buckets needed to cover a duration, rounding up.

    Args:
        duration: Forecast horizon.
        bucket_span: Width of one bucket (must be positive).

    Returns:
        ceil(duration / bucket_span).
    """
    if bucket_span <= timedelta(0):
        raise ValueError(f"bucket span must be positive, got {format_duration(bucket_span)}")
    return math.ceil(duration / bucket_span)


def is_bucket_aligned(timestamp: datetime, bucket_span: timedelta) -> bool:
    """Check whether a timestamp falls on a bucket boundary (epoch-based).

    Args:
        timestamp: Timezone-aware timestamp.
        bucket_span: Width of one bucket.

    Returns:
        True if the timestamp is a whole multiple of the bucket span since epoch.
    """
    epoch = datetime(1970, 1, 1, tzinfo=timestamp.tzinfo)
    return (timestamp - epoch) % bucket_span == timedelta(0)
