"""Pydantic schemas for anomaly job endpoints."""

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from anomalycast.features.jobs.models import JobState
from anomalycast.shared.schemas import CompactDuration

JOB_ID_PATTERN = r"^[a-z0-9](?:[a-z0-9_\-]{0,62}[a-z0-9])?$"


class JobCreate(BaseModel):
    """Request schema for registering an anomaly job.

    New jobs start CLOSED; open them before submitting forecasts.
    """

    job_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        pattern=JOB_ID_PATTERN,
        description="Job identifier: lowercase alphanumerics, '-' and '_', "
        "starting and ending with an alphanumeric.",
    )
    bucket_span: CompactDuration = Field(
        ...,
        description="Bucket width, e.g. '1h' or '15m'. Whole seconds only.",
    )

    @field_validator("bucket_span")
    @classmethod
    def validate_bucket_span(cls, v: timedelta) -> timedelta:
        """Bucket span must be a positive whole number of seconds."""
        if v <= timedelta(0):
            raise ValueError("bucket_span must be positive")
        if v % timedelta(seconds=1):
            raise ValueError("bucket_span must be a whole number of seconds")
        return v


class ModelStateUpdate(BaseModel):
    """Model state published by the ingestion pipeline after a flush."""

    last_bucket_time: datetime = Field(
        ...,
        description="Start time of the last processed bucket. Must be aligned "
        "to the bucket span and must not move backwards.",
    )
    model_snapshot: dict[str, Any] = Field(
        ...,
        description="Opaque model state passed through to the analysis engine.",
    )

    @field_validator("last_bucket_time")
    @classmethod
    def validate_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are ambiguous; require an explicit offset."""
        if v.tzinfo is None:
            raise ValueError("last_bucket_time must include a timezone offset")
        return v


class JobResponse(BaseModel):
    """Response schema for a single anomaly job."""

    model_config = ConfigDict(from_attributes=True)

    job_id: str
    bucket_span: CompactDuration
    state: JobState
    last_bucket_time: datetime | None = Field(
        None,
        description="Start of the last processed bucket. Null until data is processed.",
    )
    has_model_snapshot: bool = Field(
        False,
        description="Whether a model snapshot has been published.",
    )
    created_at: datetime
    updated_at: datetime
