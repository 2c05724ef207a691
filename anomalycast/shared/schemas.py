"""Shared Pydantic types for API schemas."""

from datetime import timedelta
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer, WithJsonSchema

from anomalycast.shared.timevalue import format_duration, parse_duration


def _coerce_duration(value: Any) -> Any:  # noqa: ANN401
    """Parse compact strings and zero; leave timedeltas for pydantic."""
    if isinstance(value, str | int) and not isinstance(value, bool):
        return parse_duration(value)
    return value


CompactDuration = Annotated[
    timedelta,
    BeforeValidator(_coerce_duration),
    PlainSerializer(format_duration, return_type=str),
    WithJsonSchema(
        {
            "type": "string",
            "pattern": r"^-?\d+(ms|s|m|h|d)?$",
            "examples": ["10m", "1h", "3d", "0"],
        }
    ),
]
"""A duration given as ``<number><unit>`` (units: ms, s, m, h, d) and rendered
back in its most compact unit."""
