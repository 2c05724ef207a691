"""Forecast storage providers.

Provides an abstract interface plus in-memory and SQLAlchemy
implementations. These operations are atomic per forecast:

- ``finish``: stores every point and flips the stats record to FINISHED,
  only if the record is still STARTED. Readers never see points without
  FINISHED, or FINISHED without all its points.
- ``delete_forecast``: removes the stats record and all its points together.
- ``get_forecast``: reads the stats record and its points as one snapshot.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy import Select, delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from anomalycast.core.logging import get_logger
from anomalycast.features.forecasting.domain import (
    Expiry,
    Forecast,
    ForecastRequestStats,
    ForecastStatus,
)
from anomalycast.features.forecasting.models import ForecastPointRecord, ForecastRequestStatsRecord

logger = get_logger(__name__)

ForecastKey = tuple[str, str]


class StoreError(Exception):
    """Base exception for forecast storage operations."""

    pass


class DuplicateForecastError(StoreError):
    """A stats record already exists for this (job_id, forecast_id)."""

    pass


class AbstractForecastStore(ABC):
    """Abstract base class for forecast storage.

    All methods raise StoreError when the backend fails.
    """

    @abstractmethod
    async def create_stats(self, stats: ForecastRequestStats) -> None:
        """Insert the initial STARTED record.

        Raises:
            DuplicateForecastError: If the key is already taken.
        """

    @abstractmethod
    async def get_stats(self, job_id: str, forecast_id: str) -> ForecastRequestStats | None:
        """Fetch one stats record, None if absent."""

    @abstractmethod
    async def list_stats(self, job_id: str | None = None) -> list[ForecastRequestStats]:
        """List stats records ordered by create_time, optionally for one job."""

    @abstractmethod
    async def finish(
        self,
        job_id: str,
        forecast_id: str,
        points: Sequence[Forecast],
        end_time: datetime,
        processing_time_ms: float | None = None,
    ) -> ForecastRequestStats | None:
        """Store points and mark the forecast FINISHED in one step.

        Returns:
            The updated record, or None if the forecast is absent or no
            longer STARTED (nothing is written in that case).
        """

    @abstractmethod
    async def fail(
        self,
        job_id: str,
        forecast_id: str,
        error_message: str,
        end_time: datetime,
        processing_time_ms: float | None = None,
    ) -> ForecastRequestStats | None:
        """Mark the forecast FAILED.

        Returns:
            The updated record, or None if absent or no longer STARTED.
        """

    @abstractmethod
    async def get_points(self, job_id: str, forecast_id: str) -> list[Forecast]:
        """Points of one forecast in ascending timestamp order."""

    @abstractmethod
    async def get_forecast(
        self, job_id: str, forecast_id: str
    ) -> tuple[ForecastRequestStats, list[Forecast]] | None:
        """Stats and points of one forecast read as a single snapshot.

        The point list always agrees with the returned status: empty unless
        FINISHED, and then exactly ``record_count`` long. None if absent.
        """

    @abstractmethod
    async def find_expired(self, now: datetime) -> list[ForecastKey]:
        """Keys of forecasts with a timed expiry at or before ``now``.

        Never-expiring forecasts are never returned.
        """

    @abstractmethod
    async def delete_forecast(self, job_id: str, forecast_id: str) -> bool:
        """Delete the stats record and all points of a forecast.

        Returns:
            True if something was deleted, False if the forecast was absent.
        """


class InMemoryForecastStore(AbstractForecastStore):
    """Process-local forecast store.

    A single asyncio lock guards both maps; every compound write happens
    under one acquisition, so readers only ever see whole states.
    """

    def __init__(self) -> None:
        self._stats: dict[ForecastKey, ForecastRequestStats] = {}
        self._points: dict[ForecastKey, tuple[Forecast, ...]] = {}
        self._lock = asyncio.Lock()

    async def create_stats(self, stats: ForecastRequestStats) -> None:
        key = (stats.job_id, stats.forecast_id)
        async with self._lock:
            if key in self._stats:
                raise DuplicateForecastError(
                    f"Forecast [{stats.forecast_id}] already exists for job [{stats.job_id}]"
                )
            self._stats[key] = stats

    async def get_stats(self, job_id: str, forecast_id: str) -> ForecastRequestStats | None:
        async with self._lock:
            return self._stats.get((job_id, forecast_id))

    async def list_stats(self, job_id: str | None = None) -> list[ForecastRequestStats]:
        async with self._lock:
            records = [s for s in self._stats.values() if job_id is None or s.job_id == job_id]
        return sorted(records, key=lambda s: (s.create_time, s.forecast_id))

    async def finish(
        self,
        job_id: str,
        forecast_id: str,
        points: Sequence[Forecast],
        end_time: datetime,
        processing_time_ms: float | None = None,
    ) -> ForecastRequestStats | None:
        key = (job_id, forecast_id)
        async with self._lock:
            current = self._stats.get(key)
            if current is None or current.status != ForecastStatus.STARTED:
                return None
            updated = current.finished(len(points), end_time, processing_time_ms)
            self._points[key] = tuple(sorted(points, key=lambda p: p.timestamp))
            self._stats[key] = updated
            return updated

    async def fail(
        self,
        job_id: str,
        forecast_id: str,
        error_message: str,
        end_time: datetime,
        processing_time_ms: float | None = None,
    ) -> ForecastRequestStats | None:
        key = (job_id, forecast_id)
        async with self._lock:
            current = self._stats.get(key)
            if current is None or current.status != ForecastStatus.STARTED:
                return None
            updated = current.failed(error_message, end_time, processing_time_ms)
            self._stats[key] = updated
            return updated

    async def get_points(self, job_id: str, forecast_id: str) -> list[Forecast]:
        async with self._lock:
            return list(self._points.get((job_id, forecast_id), ()))

    async def get_forecast(
        self, job_id: str, forecast_id: str
    ) -> tuple[ForecastRequestStats, list[Forecast]] | None:
        key = (job_id, forecast_id)
        async with self._lock:
            stats = self._stats.get(key)
            if stats is None:
                return None
            return stats, list(self._points.get(key, ()))

    async def find_expired(self, now: datetime) -> list[ForecastKey]:
        async with self._lock:
            expired = [s for s in self._stats.values() if s.expiry.is_due(now)]
        expired.sort(key=lambda s: s.expiry.instant or now)
        return [(s.job_id, s.forecast_id) for s in expired]

    async def delete_forecast(self, job_id: str, forecast_id: str) -> bool:
        key = (job_id, forecast_id)
        async with self._lock:
            self._points.pop(key, None)
            return self._stats.pop(key, None) is not None


class SqlAlchemyForecastStore(AbstractForecastStore):
    """Forecast store on the ``forecast_request_stats``/``forecast_point`` tables.

    Each compound operation runs in a single transaction. The terminal
    write is a conditional UPDATE on ``status = 'started'``, so a duplicate
    completion matches no row and writes nothing.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def create_stats(self, stats: ForecastRequestStats) -> None:
        try:
            async with self._session_maker() as session, session.begin():
                session.add(_to_record(stats))
        except IntegrityError as e:
            raise DuplicateForecastError(
                f"Forecast [{stats.forecast_id}] already exists for job [{stats.job_id}]"
            ) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create forecast stats: {e}") from e

    async def get_stats(self, job_id: str, forecast_id: str) -> ForecastRequestStats | None:
        try:
            async with self._session_maker() as session:
                record = await session.get(ForecastRequestStatsRecord, (job_id, forecast_id))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read forecast stats: {e}") from e
        return _to_stats(record) if record is not None else None

    async def list_stats(self, job_id: str | None = None) -> list[ForecastRequestStats]:
        stmt = select(ForecastRequestStatsRecord)
        if job_id is not None:
            stmt = stmt.where(ForecastRequestStatsRecord.job_id == job_id)
        stmt = stmt.order_by(
            ForecastRequestStatsRecord.create_time,
            ForecastRequestStatsRecord.forecast_id,
        )
        try:
            async with self._session_maker() as session:
                records = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list forecast stats: {e}") from e
        return [_to_stats(r) for r in records]

    async def finish(
        self,
        job_id: str,
        forecast_id: str,
        points: Sequence[Forecast],
        end_time: datetime,
        processing_time_ms: float | None = None,
    ) -> ForecastRequestStats | None:
        return await self._terminal_write(
            job_id,
            forecast_id,
            values={
                "status": ForecastStatus.FINISHED.value,
                "record_count": len(points),
                "end_time": end_time,
                "processing_time_ms": processing_time_ms,
            },
            points=points,
        )

    async def fail(
        self,
        job_id: str,
        forecast_id: str,
        error_message: str,
        end_time: datetime,
        processing_time_ms: float | None = None,
    ) -> ForecastRequestStats | None:
        return await self._terminal_write(
            job_id,
            forecast_id,
            values={
                "status": ForecastStatus.FAILED.value,
                "error_message": error_message[:2000],
                "end_time": end_time,
                "processing_time_ms": processing_time_ms,
            },
            points=(),
        )

    async def get_points(self, job_id: str, forecast_id: str) -> list[Forecast]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(_points_query(job_id, forecast_id))
                records = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read forecast points: {e}") from e
        return [_to_point(r) for r in records]

    async def get_forecast(
        self, job_id: str, forecast_id: str
    ) -> tuple[ForecastRequestStats, list[Forecast]] | None:
        try:
            async with self._session_maker() as session, session.begin():
                # Both reads see one snapshot, so a concurrent finish or delete
                # is either wholly visible or not at all
                await session.connection(
                    execution_options={"isolation_level": "REPEATABLE READ"}
                )
                record = await session.get(ForecastRequestStatsRecord, (job_id, forecast_id))
                if record is None:
                    return None
                points = (
                    (await session.execute(_points_query(job_id, forecast_id))).scalars().all()
                )
                stats = _to_stats(record)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read forecast [{forecast_id}]: {e}") from e
        return stats, [_to_point(r) for r in points]

    async def find_expired(self, now: datetime) -> list[ForecastKey]:
        stmt = (
            select(ForecastRequestStatsRecord.job_id, ForecastRequestStatsRecord.forecast_id)
            .where(
                ForecastRequestStatsRecord.expiry_time.is_not(None)
                & (ForecastRequestStatsRecord.expiry_time <= now)
            )
            .order_by(ForecastRequestStatsRecord.expiry_time)
        )
        try:
            async with self._session_maker() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to find expired forecasts: {e}") from e
        return [(row.job_id, row.forecast_id) for row in rows]

    async def delete_forecast(self, job_id: str, forecast_id: str) -> bool:
        try:
            async with self._session_maker() as session, session.begin():
                await session.execute(
                    delete(ForecastPointRecord).where(
                        (ForecastPointRecord.job_id == job_id)
                        & (ForecastPointRecord.forecast_id == forecast_id)
                    )
                )
                result = await session.execute(
                    delete(ForecastRequestStatsRecord).where(
                        (ForecastRequestStatsRecord.job_id == job_id)
                        & (ForecastRequestStatsRecord.forecast_id == forecast_id)
                    )
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete forecast [{forecast_id}]: {e}") from e
        return bool(result.rowcount)

    async def _terminal_write(
        self,
        job_id: str,
        forecast_id: str,
        values: dict[str, object],
        points: Sequence[Forecast],
    ) -> ForecastRequestStats | None:
        stmt = (
            update(ForecastRequestStatsRecord)
            .where(
                (ForecastRequestStatsRecord.job_id == job_id)
                & (ForecastRequestStatsRecord.forecast_id == forecast_id)
                & (ForecastRequestStatsRecord.status == ForecastStatus.STARTED.value)
            )
            .values(**values)
        )
        try:
            async with self._session_maker() as session, session.begin():
                result = await session.execute(stmt)
                if not result.rowcount:
                    return None
                if points:
                    await session.execute(
                        insert(ForecastPointRecord),
                        [
                            {
                                "job_id": p.job_id,
                                "forecast_id": p.forecast_id,
                                "timestamp": p.timestamp,
                                "bucket_span_seconds": int(p.bucket_span.total_seconds()),
                                "predicted_value": p.predicted_value,
                            }
                            for p in points
                        ],
                    )
                record = await session.get(
                    ForecastRequestStatsRecord,
                    (job_id, forecast_id),
                    populate_existing=True,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to record terminal state of [{forecast_id}]: {e}") from e
        return _to_stats(record) if record is not None else None


def _points_query(job_id: str, forecast_id: str) -> Select[tuple[ForecastPointRecord]]:
    return (
        select(ForecastPointRecord)
        .where(
            (ForecastPointRecord.job_id == job_id)
            & (ForecastPointRecord.forecast_id == forecast_id)
        )
        .order_by(ForecastPointRecord.timestamp)
    )


def _to_point(record: ForecastPointRecord) -> Forecast:
    return Forecast(
        job_id=record.job_id,
        forecast_id=record.forecast_id,
        timestamp=record.timestamp,
        bucket_span=timedelta(seconds=record.bucket_span_seconds),
        predicted_value=record.predicted_value,
    )


def _to_record(stats: ForecastRequestStats) -> ForecastRequestStatsRecord:
    return ForecastRequestStatsRecord(
        job_id=stats.job_id,
        forecast_id=stats.forecast_id,
        create_time=stats.create_time,
        expiry_time=stats.expiry.instant,
        duration_ms=stats.duration // timedelta(milliseconds=1),
        bucket_span_seconds=int(stats.bucket_span.total_seconds()),
        status=stats.status.value,
        record_count=stats.record_count,
        error_message=stats.error_message,
        end_time=stats.end_time,
        processing_time_ms=stats.processing_time_ms,
    )


def _to_stats(record: ForecastRequestStatsRecord) -> ForecastRequestStats:
    return ForecastRequestStats(
        job_id=record.job_id,
        forecast_id=record.forecast_id,
        create_time=record.create_time,
        duration=timedelta(milliseconds=record.duration_ms),
        bucket_span=timedelta(seconds=record.bucket_span_seconds),
        expiry=Expiry.never() if record.expiry_time is None else Expiry.at(record.expiry_time),
        status=ForecastStatus(record.status),
        record_count=record.record_count,
        error_message=record.error_message,
        end_time=record.end_time,
        processing_time_ms=record.processing_time_ms,
    )
