"""Baseline extrapolators used by the reference analysis engine.

All extrapolators implement a common interface:
- fit(y) -> self
- predict(horizon) -> np.ndarray
- get_params() -> dict

``y`` holds one value per processed bucket, oldest first. Predictions are
one value per future bucket, starting with the bucket right after the last
processed one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Literal

import numpy as np

FloatArray = np.ndarray[Any, np.dtype[np.floating[Any]]]

ExtrapolationMethod = Literal["mean", "naive", "moving_average", "seasonal_naive"]


class BaseExtrapolator(ABC):
    """Abstract base class for bucket extrapolators."""

    def __init__(self) -> None:
        self._is_fitted = False

    @abstractmethod
    def fit(self, y: FloatArray) -> BaseExtrapolator:
        """Fit on per-bucket history.

        Args:
            y: Per-bucket values (1D array), oldest first.

        Returns:
            self (for method chaining).

        Raises:
            ValueError: If y has too few observations.
        """

    @abstractmethod
    def predict(self, horizon: int) -> FloatArray:
        """Predict ``horizon`` future buckets.

        Raises:
            RuntimeError: If the extrapolator has not been fitted.
        """

    @abstractmethod
    def get_params(self) -> dict[str, Any]:
        """Get extrapolator parameters."""

    @property
    def is_fitted(self) -> bool:
        return self._is_fitted

    def _require_fitted(self) -> None:
        if not self._is_fitted:
            raise RuntimeError("Extrapolator must be fitted before predict")


class MeanExtrapolator(BaseExtrapolator):
    """Predicts the mean of all observed buckets for every future bucket.

    Formula: y_hat[t+h] = mean(y)
    """

    def __init__(self) -> None:
        super().__init__()
        self._level = 0.0

    def fit(self, y: FloatArray) -> MeanExtrapolator:
        if len(y) == 0:
            raise ValueError("Cannot fit on empty array")
        self._level = float(np.mean(y))
        self._is_fitted = True
        return self

    def predict(self, horizon: int) -> FloatArray:
        self._require_fitted()
        return np.full(horizon, self._level, dtype=np.float64)

    def get_params(self) -> dict[str, Any]:
        return {}


class NaiveExtrapolator(BaseExtrapolator):
    """Predicts the last observed bucket for every future bucket.

    Formula: y_hat[t+h] = y[t]
    """

    def __init__(self) -> None:
        super().__init__()
        self._last_value = 0.0

    def fit(self, y: FloatArray) -> NaiveExtrapolator:
        if len(y) == 0:
            raise ValueError("Cannot fit on empty array")
        self._last_value = float(y[-1])
        self._is_fitted = True
        return self

    def predict(self, horizon: int) -> FloatArray:
        self._require_fitted()
        return np.full(horizon, self._last_value, dtype=np.float64)

    def get_params(self) -> dict[str, Any]:
        return {}


class MovingAverageExtrapolator(BaseExtrapolator):
    """Predicts the mean of the last ``window_size`` buckets.

    Formula: y_hat[t+h] = mean(y[t-window+1:t+1])

    Does not update recursively: the same level is used for every horizon.
    """

    def __init__(self, window_size: int = 24) -> None:
        super().__init__()
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.window_size = window_size
        self._level = 0.0

    def fit(self, y: FloatArray) -> MovingAverageExtrapolator:
        if len(y) < self.window_size:
            raise ValueError(f"Need at least {self.window_size} observations, got {len(y)}")
        self._level = float(np.mean(y[-self.window_size :]))
        self._is_fitted = True
        return self

    def predict(self, horizon: int) -> FloatArray:
        self._require_fitted()
        return np.full(horizon, self._level, dtype=np.float64)

    def get_params(self) -> dict[str, Any]:
        return {"window_size": self.window_size}


class SeasonalNaiveExtrapolator(BaseExtrapolator):
    """Repeats the last full season of buckets.

    Formula: y_hat[t+h] = y[t+h-m] where m is season_length

    With hourly buckets and m=24, tomorrow 09:00 is predicted as today 09:00.
    """

    def __init__(self, season_length: int = 24) -> None:
        super().__init__()
        if season_length < 1:
            raise ValueError(f"season_length must be >= 1, got {season_length}")
        self.season_length = season_length
        self._season: FloatArray | None = None

    def fit(self, y: FloatArray) -> SeasonalNaiveExtrapolator:
        if len(y) < self.season_length:
            raise ValueError(f"Need at least {self.season_length} observations, got {len(y)}")
        self._season = np.array(y[-self.season_length :], dtype=np.float64)
        self._is_fitted = True
        return self

    def predict(self, horizon: int) -> FloatArray:
        self._require_fitted()
        if self._season is None:
            raise RuntimeError("Extrapolator was not properly fitted")
        return np.resize(self._season, horizon)

    def get_params(self) -> dict[str, Any]:
        return {"season_length": self.season_length}


def extrapolator_factory(
    method: str,
    window_size: int = 24,
    season_length: int = 24,
) -> BaseExtrapolator:
    """Create an extrapolator by method name.

    Args:
        method: One of "mean", "naive", "moving_average", "seasonal_naive".
        window_size: Window for moving_average.
        season_length: Period for seasonal_naive.

    Returns:
        Unfitted extrapolator.

    Raises:
        ValueError: If the method is unknown.
    """
    if method == "mean":
        return MeanExtrapolator()
    elif method == "naive":
        return NaiveExtrapolator()
    elif method == "moving_average":
        return MovingAverageExtrapolator(window_size=window_size)
    elif method == "seasonal_naive":
        return SeasonalNaiveExtrapolator(season_length=season_length)
    else:
        raise ValueError(f"Unknown extrapolation method: {method}")
