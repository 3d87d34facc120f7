"""Differencing and integration for ARIMA-type models.

The forward transform applies ``d`` lag-1 differences followed by ``D`` seasonal
differences at lag ``s``:

    working = seasonal_diff^D(diff^d(y))

Integration inverts the passes in reverse order, one level at a time. At each level
the values of the level below are rebuilt autoregressively from their own history:

    x_t = y_t + x_{t-lag}

which is exact arithmetic, so differencing then integrating reproduces the original
values up to floating point rounding.
"""

import logging
from typing import List, Sequence

import numpy as np

from models.errors import InvalidInputError

logger = logging.getLogger(__name__)


def difference(series: np.ndarray, lag: int = 1) -> np.ndarray:
    """
    Apply one differencing pass at the given lag.

    Args:
        series: 1-D array of observations.
        lag: Differencing lag (1 for trend, the season length for seasonality).

    Returns:
        Array of length ``len(series) - lag`` with ``out[i] = series[i + lag] - series[i]``.

    Raises:
        InvalidInputError: If lag is not positive or not shorter than the series.
    """
    series = np.asarray(series, dtype=float)
    if lag < 1:
        raise InvalidInputError(f"Differencing lag must be positive, got {lag}.")
    if lag >= len(series):
        raise InvalidInputError(
            f"Series too short for requested differencing orders: lag {lag} needs more than "
            f"{lag} points, got {len(series)}."
        )
    return series[lag:] - series[:-lag]


def differencing_lags(d: int, D: int, s: int) -> List[int]:
    """Lags of the differencing passes in the order they are applied."""
    lags = [1] * d
    if s >= 2:
        lags += [s] * D
    return lags


def differencing_levels(series: Sequence[float], d: int, D: int, s: int) -> List[np.ndarray]:
    """
    Compute every intermediate level of the differencing transform.

    Args:
        series: Original observations.
        d: Number of lag-1 passes.
        D: Number of seasonal passes (ignored when s < 2).
        s: Season length.

    Returns:
        List whose first element is the original series and last element the working
        series; element ``k + 1`` is element ``k`` differenced by the k-th lag.
    """
    levels = [np.asarray(series, dtype=float).copy()]
    for lag in differencing_lags(d, D, s):
        levels.append(difference(levels[-1], lag))
    return levels


def apply_differencing(series: Sequence[float], d: int, D: int, s: int) -> np.ndarray:
    """Return the working series: ``d`` lag-1 passes then ``D`` lag-``s`` passes."""
    return differencing_levels(series, d, D, s)[-1]


def integrate(forecast: Sequence[float], original_series: Sequence[float], d: int, D: int, s: int) -> np.ndarray:
    """
    Map forecasts of the working series back to the original scale.

    Args:
        forecast: Forecasts on the fully differenced scale.
        original_series: The undifferenced history the forecasts continue.
        d: Number of lag-1 passes applied.
        D: Number of seasonal passes applied.
        s: Season length.

    Returns:
        Forecasts in the scale of ``original_series``.

    Raises:
        InvalidInputError: If the history is too short for the differencing orders.
    """
    values = np.asarray(forecast, dtype=float).copy()
    lags = differencing_lags(d, D, s)
    if not lags or values.size == 0:
        return values

    levels = differencing_levels(original_series, d, D, s)
    steps = values.size
    # Undo the last pass first: level k is rebuilt from level k + 1.
    for level, lag in zip(reversed(levels[:-1]), reversed(lags)):
        extended = np.concatenate([level, np.zeros(steps)])
        n = level.size
        for i in range(steps):
            extended[n + i] = values[i] + extended[n + i - lag]
        values = extended[n:]
    return values
