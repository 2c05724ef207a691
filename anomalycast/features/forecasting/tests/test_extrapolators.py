"""Tests for baseline extrapolators."""

import numpy as np
import pytest

from anomalycast.features.forecasting.extrapolators import (
    MeanExtrapolator,
    MovingAverageExtrapolator,
    NaiveExtrapolator,
    SeasonalNaiveExtrapolator,
    extrapolator_factory,
)


class TestMeanExtrapolator:
    """Tests for MeanExtrapolator."""

    def test_predicts_mean_for_every_bucket(self, hourly_history):
        """The ramp 0..23 averages to 11.5."""
        model = MeanExtrapolator().fit(hourly_history)

        forecasts = model.predict(horizon=5)

        assert len(forecasts) == 5
        np.testing.assert_allclose(forecasts, 11.5)

    def test_fit_empty_array_raises(self):
        with pytest.raises(ValueError, match="empty"):
            MeanExtrapolator().fit(np.array([], dtype=np.float64))

    def test_predict_before_fit_raises(self):
        with pytest.raises(RuntimeError, match="must be fitted"):
            MeanExtrapolator().predict(horizon=3)


class TestNaiveExtrapolator:
    """Tests for NaiveExtrapolator."""

    def test_repeats_last_bucket(self, hourly_history):
        model = NaiveExtrapolator()
        model.fit(hourly_history)

        assert model.is_fitted
        np.testing.assert_array_equal(model.predict(horizon=3), [23.0, 23.0, 23.0])

    def test_predict_before_fit_raises(self):
        with pytest.raises(RuntimeError, match="must be fitted"):
            NaiveExtrapolator().predict(horizon=1)


class TestMovingAverageExtrapolator:
    """Tests for MovingAverageExtrapolator."""

    def test_uses_last_window(self, hourly_history):
        """Last 4 buckets are 20..23, mean 21.5."""
        model = MovingAverageExtrapolator(window_size=4).fit(hourly_history)

        np.testing.assert_allclose(model.predict(horizon=2), [21.5, 21.5])

    def test_too_few_observations_raises(self):
        model = MovingAverageExtrapolator(window_size=10)

        with pytest.raises(ValueError, match="at least 10"):
            model.fit(np.arange(5, dtype=np.float64))

    def test_invalid_window_raises(self):
        with pytest.raises(ValueError, match="window_size"):
            MovingAverageExtrapolator(window_size=0)

    def test_get_params(self):
        assert MovingAverageExtrapolator(window_size=6).get_params() == {"window_size": 6}


class TestSeasonalNaiveExtrapolator:
    """Tests for SeasonalNaiveExtrapolator."""

    def test_repeats_last_season(self, hourly_history):
        """Tomorrow at hour h is predicted as today at hour h."""
        model = SeasonalNaiveExtrapolator(season_length=24).fit(hourly_history)

        forecasts = model.predict(horizon=30)

        np.testing.assert_array_equal(forecasts[:24], np.arange(24))
        np.testing.assert_array_equal(forecasts[24:], np.arange(6))

    def test_horizon_shorter_than_season(self, hourly_history):
        model = SeasonalNaiveExtrapolator(season_length=24).fit(hourly_history)

        np.testing.assert_array_equal(model.predict(horizon=3), [0.0, 1.0, 2.0])

    def test_too_few_observations_raises(self):
        with pytest.raises(ValueError, match="at least 24"):
            SeasonalNaiveExtrapolator(season_length=24).fit(np.ones(10))


class TestExtrapolatorFactory:
    """Tests for extrapolator_factory."""

    @pytest.mark.parametrize(
        ("method", "expected_type"),
        [
            ("mean", MeanExtrapolator),
            ("naive", NaiveExtrapolator),
            ("moving_average", MovingAverageExtrapolator),
            ("seasonal_naive", SeasonalNaiveExtrapolator),
        ],
    )
    def test_creates_by_name(self, method, expected_type):
        assert isinstance(extrapolator_factory(method), expected_type)

    def test_passes_parameters(self):
        model = extrapolator_factory("seasonal_naive", season_length=12)
        assert model.get_params() == {"season_length": 12}

    def test_unknown_method_raises(self):
        with pytest.raises(ValueError, match="Unknown extrapolation method"):
            extrapolator_factory("prophet")
