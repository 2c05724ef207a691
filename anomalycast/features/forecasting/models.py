"""Forecast ORM models.

Stats are keyed by (job_id, forecast_id); points by
(job_id, forecast_id, timestamp) so a forecast's points are read back as an
ordered range. Points cascade-delete with their stats row.
"""

from __future__ import annotations

import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from anomalycast.core.database import Base


class ForecastRequestStatsRecord(Base):
    """Persisted forecast request stats.

    Attributes:
        job_id: Owning anomaly job.
        forecast_id: Forecast identifier (UUID hex, 32 chars).
        create_time: Submission time.
        expiry_time: Deletion eligibility time; NULL means never expire.
        duration_ms: Forecast horizon in milliseconds.
        bucket_span_seconds: Job bucket span at submission.
        status: Lifecycle status.
        record_count: Number of stored points.
        error_message: Failure reason if status=failed.
        end_time: Time of the terminal transition.
        processing_time_ms: Engine time.
    """

    __tablename__ = "forecast_request_stats"

    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    forecast_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    create_time: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    expiry_time: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration_ms: Mapped[int] = mapped_column(BigInteger)
    bucket_span_seconds: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20))
    record_count: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    end_time: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_time_ms: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("ix_forecast_request_stats_expiry_time", "expiry_time"),
        CheckConstraint(
            "status IN ('started', 'finished', 'failed')",
            name="ck_forecast_request_stats_valid_status",
        ),
        CheckConstraint(
            "expiry_time IS NULL OR expiry_time >= create_time",
            name="ck_forecast_request_stats_expiry_after_create",
        ),
    )


class ForecastPointRecord(Base):
    """One persisted predicted bucket."""

    __tablename__ = "forecast_point"

    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    forecast_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    timestamp: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), primary_key=True)
    bucket_span_seconds: Mapped[int] = mapped_column(Integer)
    predicted_value: Mapped[float] = mapped_column(Float)

    __table_args__ = (
        ForeignKeyConstraint(
            ["job_id", "forecast_id"],
            ["forecast_request_stats.job_id", "forecast_request_stats.forecast_id"],
            ondelete="CASCADE",
            name="fk_forecast_point_stats",
        ),
    )
