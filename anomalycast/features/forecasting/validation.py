"""Forecast request validation and expiry resolution.

Both components are pure functions of their inputs and the injected
ForecastDefaults; neither reads the clock or the settings singleton.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from anomalycast.core.config import Settings, get_settings
from anomalycast.core.exceptions import InvalidJobStateError, ValidationError
from anomalycast.features.forecasting.domain import Expiry
from anomalycast.features.jobs.provider import JobView
from anomalycast.shared.timevalue import format_duration


@dataclass(frozen=True)
class ForecastDefaults:
    """Process-wide forecast defaults.

    Attributes:
        default_duration: Horizon used when a request names none.
        max_duration: Longest horizon a request may ask for.
        default_expiry: Retention used when a request names none.
    """

    default_duration: timedelta = timedelta(days=1)
    max_duration: timedelta = timedelta(days=56)
    default_expiry: timedelta = timedelta(days=14)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ForecastDefaults:
        settings = settings or get_settings()
        return cls(
            default_duration=settings.forecast_default_duration,
            max_duration=settings.forecast_max_duration,
            default_expiry=settings.forecast_default_expiry,
        )


def no_data_error(job_id: str) -> InvalidJobStateError:
    """Error for an open job that has not processed any bucket yet."""
    return InvalidJobStateError(
        message=f"Cannot run forecast because job [{job_id}] has not processed any data",
        details={"job_id": job_id},
    )


class ForecastValidator:
    """Checks a forecast request against the job it targets."""

    def __init__(self, defaults: ForecastDefaults | None = None) -> None:
        self.defaults = defaults or ForecastDefaults()

    def validate(self, job: JobView, requested_duration: timedelta | None) -> timedelta:
        """Resolve the concrete forecast duration.

        Checks run in order: job state, duration bounds, then whether the
        job has processed any data.

        Args:
            job: Point-in-time view of the target job.
            requested_duration: Horizon from the request, None for the default.

        Returns:
            The requested duration unchanged, or the default when absent.

        Raises:
            InvalidJobStateError: If the job is not open or has no processed data.
            ValidationError: If a requested duration is shorter than the bucket
                span or longer than the configured maximum.
        """
        if not job.is_open:
            raise InvalidJobStateError(
                message=f"Cannot run forecast because job [{job.job_id}] is not open",
                details={"job_id": job.job_id, "state": job.state.value},
            )

        if requested_duration is None:
            # The configured default is returned as is, bounds apply to caller input
            duration = self.defaults.default_duration
        else:
            duration = requested_duration
            self._check_bounds(job, duration)

        if job.last_bucket_time is None:
            raise no_data_error(job.job_id)

        return duration

    def _check_bounds(self, job: JobView, duration: timedelta) -> None:
        if duration < job.bucket_span:
            raise ValidationError(
                message="[duration] must be greater or equal to the bucket span: "
                f"[{format_duration(duration)}/{format_duration(job.bucket_span)}]",
                details={"job_id": job.job_id},
            )
        if duration > self.defaults.max_duration:
            raise ValidationError(
                message=f"[duration] must be {format_duration(self.defaults.max_duration)} "
                f"or less: [{format_duration(duration)}]",
                details={"job_id": job.job_id},
            )


class ExpiryResolver:
    """Turns a requested retention into an absolute expiry."""

    def __init__(self, defaults: ForecastDefaults | None = None) -> None:
        self.defaults = defaults or ForecastDefaults()

    def resolve(self, create_time: datetime, requested_expiry: timedelta | None) -> Expiry:
        """Compute the expiry of a forecast created at ``create_time``.

        Args:
            create_time: Submission time.
            requested_expiry: Retention from the request. None means the
                default retention, zero means never expire.

        Returns:
            Expiry.never() for a zero retention, otherwise a timed expiry.

        Raises:
            ValidationError: If the retention is negative.
        """
        if requested_expiry is None:
            return Expiry.at(create_time + self.defaults.default_expiry)
        if requested_expiry < timedelta(0):
            raise ValidationError(
                message=f"[expires_in] must be non-negative: [{format_duration(requested_expiry)}]",
            )
        if requested_expiry == timedelta(0):
            return Expiry.never()
        return Expiry.at(create_time + requested_expiry)
