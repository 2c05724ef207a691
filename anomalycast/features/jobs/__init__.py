"""Anomaly jobs: registration, lifecycle and the read contract for forecasting."""

from anomalycast.features.jobs.models import AnomalyJob, JobState
from anomalycast.features.jobs.provider import (
    DatabaseJobProvider,
    InMemoryJobProvider,
    JobProvider,
    JobView,
)
from anomalycast.features.jobs.routes import router
from anomalycast.features.jobs.schemas import JobCreate, JobResponse, ModelStateUpdate
from anomalycast.features.jobs.service import JobService

__all__ = [
    "AnomalyJob",
    "DatabaseJobProvider",
    "InMemoryJobProvider",
    "JobCreate",
    "JobProvider",
    "JobResponse",
    "JobService",
    "JobState",
    "JobView",
    "ModelStateUpdate",
    "router",
]
