"""Forecast request lifecycle types.

A forecast request is tracked by a ForecastRequestStats record that is
written once as STARTED and exactly once more when it reaches a terminal
status. Predicted points are immutable and live exactly as long as their
stats record.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum


class ForecastStatus(str, Enum):
    """Forecast request states.

    State transitions:
    - STARTED -> FINISHED
    - STARTED -> FAILED
    """

    STARTED = "started"
    FINISHED = "finished"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ForecastStatus.FINISHED, ForecastStatus.FAILED)


VALID_FORECAST_TRANSITIONS: dict[ForecastStatus, set[ForecastStatus]] = {
    ForecastStatus.STARTED: {ForecastStatus.FINISHED, ForecastStatus.FAILED},
    ForecastStatus.FINISHED: set(),  # Terminal state
    ForecastStatus.FAILED: set(),  # Terminal state
}


class ExpiryKind(str, Enum):
    """Whether a forecast expires at an instant or is kept forever."""

    TIMED = "timed"
    NEVER = "never"


@dataclass(frozen=True)
class Expiry:
    """When a forecast's artifacts become eligible for deletion.

    Build with ``Expiry.at(instant)`` or ``Expiry.never()``. A never-expiring
    forecast carries no instant at all, so it cannot be mistaken for a real
    date in the past or the future.
    """

    kind: ExpiryKind
    instant: datetime | None = None

    def __post_init__(self) -> None:
        if self.kind == ExpiryKind.TIMED and self.instant is None:
            raise ValueError("A timed expiry needs an instant")
        if self.kind == ExpiryKind.NEVER and self.instant is not None:
            raise ValueError("A never-expiring expiry cannot carry an instant")

    @classmethod
    def at(cls, instant: datetime) -> Expiry:
        return cls(kind=ExpiryKind.TIMED, instant=instant)

    @classmethod
    def never(cls) -> Expiry:
        return cls(kind=ExpiryKind.NEVER)

    @property
    def is_never(self) -> bool:
        return self.kind == ExpiryKind.NEVER

    def is_due(self, now: datetime) -> bool:
        """Check whether the artifact may be deleted at ``now``."""
        if self.instant is None:
            return False
        return self.instant <= now


@dataclass(frozen=True)
class ForecastRequestStats:
    """Lifecycle record of one forecast request.

    Attributes:
        job_id: Owning anomaly job.
        forecast_id: Unique forecast identifier.
        create_time: Submission time.
        duration: Concrete forecast horizon (never shorter than bucket_span).
        bucket_span: Job bucket span captured at submission.
        expiry: When the artifacts become eligible for deletion.
        status: Lifecycle status.
        record_count: Number of predicted points, 0 until FINISHED.
        error_message: Failure reason, only set when FAILED.
        end_time: Time of the terminal transition.
        processing_time_ms: Time spent computing the forecast.
    """

    job_id: str
    forecast_id: str
    create_time: datetime
    duration: timedelta
    bucket_span: timedelta
    expiry: Expiry
    status: ForecastStatus = ForecastStatus.STARTED
    record_count: int = 0
    error_message: str | None = None
    end_time: datetime | None = None
    processing_time_ms: float | None = None

    def __post_init__(self) -> None:
        if self.expiry.instant is not None and self.expiry.instant < self.create_time:
            raise ValueError(
                f"expiry [{self.expiry.instant.isoformat()}] is before create time "
                f"[{self.create_time.isoformat()}]"
            )
        if self.status == ForecastStatus.STARTED and (
            self.record_count or self.end_time is not None
        ):
            raise ValueError("A started forecast has no record count or end time")
        if (self.error_message is not None) != (self.status == ForecastStatus.FAILED):
            raise ValueError("error_message is set if and only if the forecast failed")

    def finished(
        self,
        record_count: int,
        end_time: datetime,
        processing_time_ms: float | None = None,
    ) -> ForecastRequestStats:
        """Return the FINISHED successor of this record."""
        self._check_transition(ForecastStatus.FINISHED)
        return replace(
            self,
            status=ForecastStatus.FINISHED,
            record_count=record_count,
            end_time=end_time,
            processing_time_ms=processing_time_ms,
        )

    def failed(
        self,
        error_message: str,
        end_time: datetime,
        processing_time_ms: float | None = None,
    ) -> ForecastRequestStats:
        """Return the FAILED successor of this record."""
        self._check_transition(ForecastStatus.FAILED)
        return replace(
            self,
            status=ForecastStatus.FAILED,
            error_message=error_message,
            end_time=end_time,
            processing_time_ms=processing_time_ms,
        )

    def _check_transition(self, target: ForecastStatus) -> None:
        if target not in VALID_FORECAST_TRANSITIONS[self.status]:
            raise ValueError(
                f"Cannot move forecast [{self.forecast_id}] from "
                f"[{self.status.value}] to [{target.value}]"
            )


@dataclass(frozen=True)
class Forecast:
    """One predicted bucket of a forecast."""

    job_id: str
    forecast_id: str
    timestamp: datetime
    bucket_span: timedelta
    predicted_value: float
