"""Shared utilities used across features."""

from anomalycast.shared.clock import Clock, ManualClock, SystemClock
from anomalycast.shared.timevalue import format_duration, parse_duration

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "format_duration",
    "parse_duration",
]
