"""Tests for the engine request contract and the baseline engine."""

from datetime import UTC, datetime, timedelta

import pytest

from anomalycast.features.forecasting.engine import (
    BaselineAnalysisEngine,
    EngineError,
    EngineRequest,
)

START = datetime(2024, 1, 2, 0, 0, tzinfo=UTC)


def _request(
    duration: timedelta = timedelta(hours=3),
    snapshot: dict | None = None,
) -> EngineRequest:
    return EngineRequest(
        job_id="cpu-hourly",
        forecast_id="f1",
        bucket_span=timedelta(hours=1),
        duration=duration,
        start_time=START,
        model_snapshot=snapshot if snapshot is not None else {"bucket_values": [1.0, 3.0]},
    )


class TestEngineRequest:
    """Tests for EngineRequest."""

    @pytest.mark.parametrize(
        ("duration", "expected"),
        [
            (timedelta(hours=1), 1),
            (timedelta(hours=3), 3),
            (timedelta(days=1), 24),
            (timedelta(minutes=90), 2),
        ],
    )
    def test_expected_points_rounds_up(self, duration, expected):
        assert _request(duration=duration).expected_points == expected

    def test_bucket_time(self):
        request = _request()

        assert request.bucket_time(0) == START
        assert request.bucket_time(2) == START + timedelta(hours=2)


class TestBaselineAnalysisEngine:
    """Tests for BaselineAnalysisEngine."""

    async def test_mean_forecast(self):
        engine = BaselineAnalysisEngine()

        values = await engine.forecast(_request())

        assert [v.value for v in values] == [2.0, 2.0, 2.0]
        assert [v.timestamp for v in values] == [
            START,
            START + timedelta(hours=1),
            START + timedelta(hours=2),
        ]

    async def test_method_from_snapshot(self):
        engine = BaselineAnalysisEngine()
        snapshot = {"bucket_values": [1.0, 2.0, 5.0], "method": "naive"}

        values = await engine.forecast(_request(snapshot=snapshot))

        assert [v.value for v in values] == [5.0, 5.0, 5.0]

    async def test_seasonal_snapshot(self):
        engine = BaselineAnalysisEngine()
        snapshot = {
            "bucket_values": [1.0, 2.0, 3.0, 4.0],
            "method": "seasonal_naive",
            "season_length": 2,
        }

        values = await engine.forecast(_request(duration=timedelta(hours=4), snapshot=snapshot))

        assert [v.value for v in values] == [3.0, 4.0, 3.0, 4.0]

    async def test_default_method_used_when_absent(self):
        engine = BaselineAnalysisEngine(default_method="naive")

        values = await engine.forecast(_request(snapshot={"bucket_values": [1.0, 9.0]}))

        assert values[0].value == 9.0

    @pytest.mark.parametrize(
        "snapshot",
        [
            {},
            {"bucket_values": []},
        ],
    )
    async def test_missing_values_raise_engine_error(self, snapshot):
        engine = BaselineAnalysisEngine()

        with pytest.raises(EngineError, match="no bucket values"):
            await engine.forecast(_request(snapshot=snapshot))

    async def test_missing_snapshot_raises_engine_error(self):
        engine = BaselineAnalysisEngine()
        request = EngineRequest(
            job_id="cpu-hourly",
            forecast_id="f1",
            bucket_span=timedelta(hours=1),
            duration=timedelta(hours=1),
            start_time=START,
        )

        with pytest.raises(EngineError):
            await engine.forecast(request)

    async def test_non_numeric_values_raise_engine_error(self):
        engine = BaselineAnalysisEngine()

        with pytest.raises(EngineError, match="not numeric"):
            await engine.forecast(_request(snapshot={"bucket_values": ["a", "b"]}))

    async def test_non_finite_values_raise_engine_error(self):
        engine = BaselineAnalysisEngine()

        with pytest.raises(EngineError, match="finite"):
            await engine.forecast(_request(snapshot={"bucket_values": [1.0, float("nan")]}))

    async def test_unknown_method_raises_engine_error(self):
        engine = BaselineAnalysisEngine()

        with pytest.raises(EngineError, match="Unknown extrapolation method"):
            await engine.forecast(_request(snapshot={"bucket_values": [1.0], "method": "arima"}))

    async def test_short_history_raises_engine_error(self):
        engine = BaselineAnalysisEngine()
        snapshot = {"bucket_values": [1.0, 2.0], "method": "moving_average", "window_size": 5}

        with pytest.raises(EngineError, match="at least 5"):
            await engine.forecast(_request(snapshot=snapshot))
