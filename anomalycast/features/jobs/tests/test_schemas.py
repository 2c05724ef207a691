"""Tests for anomaly job schemas."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from anomalycast.features.jobs.models import JobState
from anomalycast.features.jobs.schemas import JobCreate, JobResponse, ModelStateUpdate


class TestJobCreate:
    """Tests for JobCreate."""

    def test_compact_bucket_span(self):
        job = JobCreate(job_id="cpu-hourly", bucket_span="15m")
        assert job.bucket_span == timedelta(minutes=15)

    @pytest.mark.parametrize("job_id", ["cpu", "cpu_1", "a", "web-01-latency"])
    def test_valid_ids(self, job_id):
        assert JobCreate(job_id=job_id, bucket_span="1h").job_id == job_id

    @pytest.mark.parametrize("job_id", ["", "CPU", "-cpu", "cpu-", "cpu job", "x" * 65])
    def test_invalid_ids(self, job_id):
        with pytest.raises(ValidationError):
            JobCreate(job_id=job_id, bucket_span="1h")

    @pytest.mark.parametrize("bucket_span", ["0", "-1h", "1500ms"])
    def test_invalid_bucket_spans(self, bucket_span):
        """Bucket span must be positive whole seconds."""
        with pytest.raises(ValidationError):
            JobCreate(job_id="cpu", bucket_span=bucket_span)

    def test_unitless_bucket_span_rejected(self):
        with pytest.raises(ValidationError, match="unit is required"):
            JobCreate(job_id="cpu", bucket_span="60")


class TestModelStateUpdate:
    """Tests for ModelStateUpdate."""

    def test_aware_timestamp_accepted(self, sample_model_state):
        assert sample_model_state.last_bucket_time.tzinfo is not None

    def test_naive_timestamp_rejected(self):
        with pytest.raises(ValidationError, match="timezone"):
            ModelStateUpdate(
                last_bucket_time=datetime(2024, 1, 1, 23, 0),
                model_snapshot={},
            )


class TestJobResponse:
    """Tests for JobResponse serialization."""

    def test_bucket_span_rendered_compact(self):
        now = datetime(2024, 1, 1, tzinfo=UTC)
        response = JobResponse(
            job_id="cpu",
            bucket_span=timedelta(hours=1),
            state=JobState.OPEN,
            created_at=now,
            updated_at=now,
        )

        data = response.model_dump(mode="json")

        assert data["bucket_span"] == "1h"
        assert data["state"] == "open"
        assert data["last_bucket_time"] is None
        assert data["has_model_snapshot"] is False
