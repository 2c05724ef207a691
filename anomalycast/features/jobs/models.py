"""Anomaly job ORM model.

An anomaly job owns the bucket span that every forecast is aligned to and a
CLOSED/OPEN lifecycle. Ingestion publishes the last processed bucket and an
opaque model snapshot onto the row; the forecasting feature only reads them.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from anomalycast.core.database import Base


class JobState(str, Enum):
    """Anomaly job lifecycle states.

    State transitions:
    - CLOSED -> OPEN (open)
    - OPEN -> CLOSED (close)
    """

    CLOSED = "closed"
    OPEN = "open"


VALID_JOB_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.CLOSED: {JobState.OPEN},
    JobState.OPEN: {JobState.CLOSED},
}


class AnomalyJob(Base):
    """Anomaly detection job.

    Attributes:
        id: Primary key.
        job_id: Unique external identifier chosen by the caller.
        bucket_span_seconds: Width of the job's time buckets.
        state: Current lifecycle state.
        last_bucket_time: Start time of the last bucket the model processed.
        model_snapshot: Opaque model state handed to the analysis engine.
        created_at: Registration time.
        updated_at: Last open/close or model-state publication.
    """

    __tablename__ = "anomaly_job"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    bucket_span_seconds: Mapped[int] = mapped_column(Integer)
    state: Mapped[str] = mapped_column(String(20), default=JobState.CLOSED.value, index=True)

    last_bucket_time: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    model_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "state IN ('closed', 'open')",
            name="ck_anomaly_job_valid_state",
        ),
        CheckConstraint(
            "bucket_span_seconds > 0",
            name="ck_anomaly_job_positive_bucket_span",
        ),
    )
