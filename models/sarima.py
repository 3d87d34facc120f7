"""Module for the seasonal SARIMA time series forecasting model.

Model: SARIMA(p,d,q)(P,D,Q)s

    phi(B) Phi(B^s) (1 - B)^d (1 - B^s)^D y_t = theta(B) Theta(B^s) e_t

The series is differenced into a working series, the AR/MA/seasonal-AR/seasonal-MA
coefficients are estimated by minimising the conditional sum of squared one-step
prediction errors with a bounded derivative-free search, and forecasts are produced by
running the fitted recursion forward and integrating back to the original scale.
"""

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.optimize import Bounds, minimize

from models.base import TSForecaster
from models.differencing import apply_differencing, differencing_lags, integrate
from models.errors import (
    InvalidInputError,
    InvalidOrderError,
    MissingSeriesForIntegrationError,
    NotFittedError,
    SingularDesignError,
)
from models.model_registry import register_model
from models.regression import LinearRegression
from utils.data_utils import create_lagged_matrix
from utils.logging_utils import log_estimation_fallback, log_fit_result, log_fit_start

logger = logging.getLogger(__name__)

ORDER_FIELDS = ("p", "d", "q", "P", "D", "Q", "s")


@dataclass(frozen=True)
class SeasonalOrder:
    """SARIMA order (p, d, q)(P, D, Q)s. A season length below 2 disables all seasonal terms."""

    p: int = 1
    d: int = 0
    q: int = 1
    P: int = 1
    D: int = 0
    Q: int = 1
    s: int = 12

    def __post_init__(self) -> None:
        for name in ORDER_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidOrderError(f"Order component {name} must be an integer, got {value!r}.")
            if value < 0:
                raise InvalidOrderError(f"Order component {name} must be non-negative, got {value}.")
            object.__setattr__(self, name, int(value))

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "SeasonalOrder":
        """Build an order from a mapping, using the class defaults for missing keys."""
        return cls(**{name: params[name] for name in ORDER_FIELDS if name in params})

    @property
    def seasonal(self) -> bool:
        return self.s >= 2

    @property
    def max_lag(self) -> int:
        """Largest lookback needed by any AR or MA term."""
        if self.seasonal:
            return max(self.p + self.s * self.P, self.q + self.s * self.Q)
        return max(self.p, self.q)

    @property
    def n_params(self) -> int:
        return self.p + self.q + self.P + self.Q

    def without_seasonal(self) -> "SeasonalOrder":
        return dataclasses.replace(self, P=0, D=0, Q=0, s=0)

    def as_tuple(self) -> Tuple[int, ...]:
        return tuple(getattr(self, name) for name in ORDER_FIELDS)

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in ORDER_FIELDS}

    def __str__(self) -> str:
        return f"SARIMA({self.p},{self.d},{self.q})({self.P},{self.D},{self.Q}){self.s}"


@dataclass(frozen=True)
class EstimationSettings:
    """Settings of the conditional-sum-of-squares estimator."""

    coefficient_bound: float = 1.5
    max_evaluations: int = 2000
    initial_value: float = 0.1
    include_intercept: bool = False

    def __post_init__(self) -> None:
        if self.coefficient_bound <= 0:
            raise ValueError("coefficient_bound must be positive.")
        if self.max_evaluations < 1:
            raise ValueError("max_evaluations must be positive.")


class FitQuality(str, Enum):
    """Whether the coefficients come from a converged optimisation or the default vector."""

    OPTIMIZED = "optimized"
    DEFAULTED = "defaulted"


@dataclass(frozen=True)
class CoefficientVector:
    """Fitted SARIMA coefficients, one block per term type plus an intercept."""

    ar: Tuple[float, ...]
    ma: Tuple[float, ...]
    seasonal_ar: Tuple[float, ...]
    seasonal_ma: Tuple[float, ...]
    intercept: float = 0.0

    @classmethod
    def from_array(cls, params: Sequence[float], order: SeasonalOrder, include_intercept: bool = False) -> "CoefficientVector":
        """
        Split a flat parameter vector into its blocks.

        Args:
            params: Values ordered as AR (p), MA (q), seasonal AR (P), seasonal MA (Q) and,
                when include_intercept is set, one trailing intercept.
            order: Model order giving the block sizes.
            include_intercept: Whether the vector carries an intercept slot.

        Raises:
            InvalidInputError: If the vector length does not match the order.
        """
        params = np.asarray(params, dtype=float)
        expected = order.n_params + (1 if include_intercept else 0)
        if params.size != expected:
            raise InvalidInputError(f"Expected {expected} parameters for {order}, got {params.size}.")
        bounds = np.cumsum([0, order.p, order.q, order.P, order.Q])
        blocks = [tuple(float(v) for v in params[bounds[i]:bounds[i + 1]]) for i in range(4)]
        intercept = float(params[-1]) if include_intercept else 0.0
        return cls(*blocks, intercept=intercept)

    def as_array(self, include_intercept: bool = False) -> np.ndarray:
        values = list(self.ar + self.ma + self.seasonal_ar + self.seasonal_ma)
        if include_intercept:
            values.append(self.intercept)
        return np.array(values, dtype=float)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ar": list(self.ar),
            "ma": list(self.ma),
            "seasonal_ar": list(self.seasonal_ar),
            "seasonal_ma": list(self.seasonal_ma),
            "intercept": self.intercept,
        }


@dataclass(frozen=True)
class EstimationResult:
    params: np.ndarray
    quality: FitQuality
    objective: float
    n_evaluations: int


# ---------------------------------------------------------------------------------
# Recursion
# ---------------------------------------------------------------------------------

def _predict_one(
    series: np.ndarray, innovations: np.ndarray, t: int, coefficients: CoefficientVector, order: SeasonalOrder
) -> float:
    """One-step prediction at index t; terms whose lagged index is negative are left out."""
    pred = coefficients.intercept
    for i, phi in enumerate(coefficients.ar):
        if t - 1 - i < 0:
            break
        pred += phi * series[t - 1 - i]
    for i, theta in enumerate(coefficients.ma):
        if t - 1 - i < 0:
            break
        pred += theta * innovations[t - 1 - i]
    if order.seasonal:
        s = order.s
        for i, big_phi in enumerate(coefficients.seasonal_ar):
            if t - s * (i + 1) < 0:
                break
            pred += big_phi * series[t - s * (i + 1)]
        for i, big_theta in enumerate(coefficients.seasonal_ma):
            if t - s * (i + 1) < 0:
                break
            pred += big_theta * innovations[t - s * (i + 1)]
    return pred


def compute_innovations(
    series: np.ndarray, coefficients: CoefficientVector, order: SeasonalOrder, start: Optional[int] = None
) -> np.ndarray:
    """
    Compute one-step prediction errors of the working series.

    Innovations before ``start`` (default: the order's largest lag) are zero, so MA terms
    near the start of the walk use fewer past errors.

    Args:
        series: Working (differenced) series.
        coefficients: Coefficients to evaluate.
        order: Model order.
        start: First index with a computed innovation.

    Returns:
        Array of the same length as ``series``.
    """
    series = np.asarray(series, dtype=float)
    start = order.max_lag if start is None else start
    innovations = np.zeros(series.size)
    for t in range(start, series.size):
        innovations[t] = series[t] - _predict_one(series, innovations, t, coefficients, order)
    return innovations


def conditional_sum_of_squares(
    params: np.ndarray, series: np.ndarray, order: SeasonalOrder, start: int, include_intercept: bool = False
) -> float:
    """
    Conditional sum of squared innovations over ``[start, len(series))``.

    Args:
        params: Flat parameter vector (see ``CoefficientVector.from_array``).
        series: Working series.
        order: Model order.
        start: First index included in the sum.
        include_intercept: Whether ``params`` carries a trailing intercept.

    Returns:
        The objective value; ``inf`` when the recursion overflows.
    """
    coefficients = CoefficientVector.from_array(params, order, include_intercept)
    with np.errstate(over="ignore", invalid="ignore"):
        innovations = compute_innovations(series, coefficients, order, start)
        rss = float(np.sum(innovations[start:] ** 2))
    return rss if np.isfinite(rss) else float("inf")


def _masked_objective(
    free_values: np.ndarray,
    template: np.ndarray,
    free_index: np.ndarray,
    series: np.ndarray,
    order: SeasonalOrder,
    start: int,
    include_intercept: bool,
) -> float:
    params = template.copy()
    params[free_index] = free_values
    return conditional_sum_of_squares(params, series, order, start, include_intercept)


# ---------------------------------------------------------------------------------
# Estimation
# ---------------------------------------------------------------------------------

def default_parameters(
    series: np.ndarray, order: SeasonalOrder, settings: Optional[EstimationSettings] = None
) -> np.ndarray:
    """
    Starting point of the estimator and fallback when optimisation is not possible.

    Every coefficient starts at ``settings.initial_value``. When p > 0 the AR block is
    seeded with the slopes of an OLS regression of each point on its p previous values.
    Seasonal blocks are zero when the order has no seasonal component, and the intercept
    slot, if any, starts at zero.

    Args:
        series: Working series.
        order: Model order.
        settings: Estimator settings.

    Returns:
        Flat parameter vector.
    """
    settings = settings or EstimationSettings()
    series = np.asarray(series, dtype=float)
    params = np.full(order.n_params + (1 if settings.include_intercept else 0), settings.initial_value)
    seasonal_start = order.p + order.q
    if not order.seasonal:
        params[seasonal_start:seasonal_start + order.P + order.Q] = 0.0
    if settings.include_intercept:
        params[-1] = 0.0

    if order.p > 0 and series.size > order.p:
        try:
            X, y = create_lagged_matrix(series, order.p)
            regression = LinearRegression().fit(X, y)
            params[:order.p] = [regression.coefficient(i) for i in range(order.p)]
        except (SingularDesignError, InvalidInputError) as e:
            logger.debug(f"AR seed regression failed, keeping initial values: {str(e)}")
    return params


def _free_index(order: SeasonalOrder, include_intercept: bool) -> np.ndarray:
    """Positions of the parameters the optimiser is allowed to move."""
    free = list(range(order.p + order.q))
    if order.seasonal:
        free += list(range(order.p + order.q, order.n_params))
    if include_intercept:
        free.append(order.n_params)
    return np.array(free, dtype=int)


def estimate_parameters(
    series: np.ndarray,
    order: SeasonalOrder,
    settings: Optional[EstimationSettings] = None,
    model_name: str = "sarima",
) -> EstimationResult:
    """
    Estimate SARIMA coefficients by conditional sum of squares.

    The search runs scipy's bounded Powell method from ``default_parameters``. When the
    series is too short, no parameter is free, or the optimiser raises or does not
    converge within the evaluation budget, the default vector is returned with
    ``FitQuality.DEFAULTED``. This function does not raise on optimiser trouble.

    Args:
        series: Working series.
        order: Model order.
        settings: Estimator settings.
        model_name: Name used in log lines.

    Returns:
        EstimationResult with the parameter vector, its quality, its objective value and
        the number of objective evaluations.
    """
    settings = settings or EstimationSettings()
    series = np.asarray(series, dtype=float)
    start = order.max_lag
    seed = default_parameters(series, order, settings)

    def fallback(reason: str, n_evaluations: int = 0, exception: Optional[Exception] = None) -> EstimationResult:
        log_estimation_fallback(model_name, reason, exception)
        objective = conditional_sum_of_squares(seed, series, order, start, settings.include_intercept)
        return EstimationResult(seed, FitQuality.DEFAULTED, objective, n_evaluations)

    if series.size < start + 2:
        return fallback(f"working series has {series.size} points, need at least {start + 2}")
    free_index = _free_index(order, settings.include_intercept)
    if free_index.size == 0:
        return fallback("no free parameters")

    lower = np.full(free_index.size, -settings.coefficient_bound)
    upper = np.full(free_index.size, settings.coefficient_bound)
    if settings.include_intercept:
        level_bound = max(float(np.max(np.abs(series))), 1.0)
        lower[-1], upper[-1] = -level_bound, level_bound
    x0 = np.clip(seed[free_index], lower, upper)

    try:
        with np.errstate(all="ignore"):
            result = minimize(
                _masked_objective,
                x0,
                args=(seed, free_index, series, order, start, settings.include_intercept),
                method="Powell",
                bounds=Bounds(lower, upper),
                options={"maxfev": settings.max_evaluations, "xtol": 1e-5, "ftol": 1e-7},
            )
    except (ArithmeticError, ValueError, RuntimeError) as e:
        return fallback("optimizer raised", exception=e)

    if not result.success:
        return fallback(f"optimizer did not converge ({result.message})", int(result.nfev))
    if not np.isfinite(result.fun):
        return fallback("non-finite objective", int(result.nfev))

    params = seed.copy()
    params[free_index] = result.x
    return EstimationResult(params, FitQuality.OPTIMIZED, float(result.fun), int(result.nfev))


# ---------------------------------------------------------------------------------
# Fitted model
# ---------------------------------------------------------------------------------

def _validate_steps(steps: int) -> int:
    if isinstance(steps, bool) or not isinstance(steps, (int, np.integer)) or steps < 1:
        raise InvalidInputError("steps must be a positive integer.")
    return int(steps)


def _as_series_values(series: Any) -> np.ndarray:
    """Convert a list, array, Series or single-column DataFrame to a finite 1-D float array."""
    if series is None:
        raise InvalidInputError("series is required.")
    if isinstance(series, pd.DataFrame):
        if series.shape[1] != 1:
            raise InvalidInputError("Univariate SARIMA models require a single-column DataFrame.")
        series = series.iloc[:, 0]
    try:
        values = np.asarray(series, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"series must contain only numbers: {str(e)}")
    if values.ndim == 2 and 1 in values.shape:
        values = values.ravel()
    if values.ndim != 1 or values.size == 0:
        raise InvalidInputError("series must be a non-empty 1-D sequence.")
    if not np.all(np.isfinite(values)):
        raise InvalidInputError("series cannot contain NaN or infinite values.")
    return values.copy()


class FittedSARIMA:
    """Immutable result of a SARIMA fit: coefficients, fit quality and forecasting."""

    def __init__(
        self,
        order: SeasonalOrder,
        coefficients: CoefficientVector,
        working_series: np.ndarray,
        quality: FitQuality,
        objective: float,
        n_evaluations: int = 0,
    ) -> None:
        self._order = order
        self._coefficients = coefficients
        self._working_series = np.array(working_series, dtype=float)
        self._quality = quality
        self._objective = float(objective)
        self._n_evaluations = int(n_evaluations)

    @property
    def order(self) -> SeasonalOrder:
        return self._order

    @property
    def p(self) -> int:
        return self._order.p

    @property
    def d(self) -> int:
        return self._order.d

    @property
    def q(self) -> int:
        return self._order.q

    @property
    def seasonal_p(self) -> int:
        return self._order.P

    @property
    def seasonal_d(self) -> int:
        return self._order.D

    @property
    def seasonal_q(self) -> int:
        return self._order.Q

    @property
    def season_length(self) -> int:
        return self._order.s

    @property
    def coefficients(self) -> CoefficientVector:
        return self._coefficients

    @property
    def working_series(self) -> np.ndarray:
        return self._working_series.copy()

    @property
    def fit_quality(self) -> FitQuality:
        return self._quality

    @property
    def objective(self) -> float:
        return self._objective

    @property
    def n_evaluations(self) -> int:
        return self._n_evaluations

    @property
    def requires_integration(self) -> bool:
        """True when forecasts must be integrated back through at least one differencing pass."""
        return bool(differencing_lags(self._order.d, self._order.D, self._order.s))

    def forecast_differenced(self, steps: int) -> np.ndarray:
        """
        Forecast the next ``steps`` values of the working (differenced) series.

        In-sample innovations are recomputed with the fitted coefficients; future
        innovations are zero and forecasted values feed later AR terms.

        Args:
            steps: Forecast horizon.

        Returns:
            Array of ``steps`` forecasts on the differenced scale.

        Raises:
            InvalidInputError: If steps is not a positive integer.
        """
        steps = _validate_steps(steps)
        n = self._working_series.size
        innovations = compute_innovations(self._working_series, self._coefficients, self._order)
        series = np.concatenate([self._working_series, np.zeros(steps)])
        innovations = np.concatenate([innovations, np.zeros(steps)])
        for t in range(n, n + steps):
            series[t] = _predict_one(series, innovations, t, self._coefficients, self._order)
        return series[n:].copy()

    def forecast(self, steps: int, original_series: Optional[Sequence[float]] = None) -> np.ndarray:
        """
        Forecast the next ``steps`` values in the original scale.

        Args:
            steps: Forecast horizon.
            original_series: The undifferenced series the forecast continues. Required
                whenever d > 0 or seasonal D > 0; ignored otherwise.

        Returns:
            Array of ``steps`` forecasts.

        Raises:
            InvalidInputError: If steps is invalid or the series is too short.
            MissingSeriesForIntegrationError: If integration is needed and no series was given.
        """
        differenced = self.forecast_differenced(steps)
        if not self.requires_integration:
            return differenced
        if original_series is None:
            raise MissingSeriesForIntegrationError(
                f"Forecasting {self._order} in the original scale requires the original series."
            )
        values = _as_series_values(original_series)
        return integrate(differenced, values, self._order.d, self._order.D, self._order.s)


# ---------------------------------------------------------------------------------
# Forecaster
# ---------------------------------------------------------------------------------

@register_model("sarima", is_univariate=True)
class SARIMAForecaster(TSForecaster):
    """SARIMA forecaster estimated by conditional sum of squares."""

    seasonal: bool = True

    def __init__(
        self,
        order: Union[SeasonalOrder, Dict[str, int], None] = None,
        settings: Optional[EstimationSettings] = None,
        forecast_steps: int = 6,
    ) -> None:
        """
        Initialize the SARIMA forecaster.

        Args:
            order: Model order, as a SeasonalOrder or a mapping with keys p, d, q, P, D, Q, s.
                Defaults to SARIMA(1,0,1)(1,0,1)12.
            settings: Estimator settings. Defaults to EstimationSettings().
            forecast_steps: Default horizon of ``predict``.

        Raises:
            InvalidOrderError: If any order component is negative or not an integer.
            ValueError: If forecast_steps is not positive.
        """
        if order is None:
            order = SeasonalOrder()
        elif isinstance(order, dict):
            order = SeasonalOrder.from_params(order)
        elif not isinstance(order, SeasonalOrder):
            raise InvalidOrderError(f"order must be a SeasonalOrder or a mapping, got {type(order).__name__}.")
        if not self.seasonal:
            order = order.without_seasonal()
        self.order = order
        self.settings = settings or EstimationSettings()
        super().__init__(order.as_dict(), forecast_steps)
        self.result: Optional[FittedSARIMA] = None
        self._train_values: Optional[np.ndarray] = None
        self._train_index: Optional[pd.Index] = None

    def fit(self, series: Any) -> FittedSARIMA:
        """
        Fit the model to a univariate series.

        Args:
            series: Observations as a list, 1-D array, Series or single-column DataFrame.

        Returns:
            The fitted model.

        Raises:
            InvalidInputError: If the series is empty, non-numeric, non-finite, or too short
                for the differencing orders.
        """
        values = _as_series_values(series)
        model_name = getattr(self, "model_name", self.__class__.__name__)
        log_fit_start(model_name, self.order, int(values.size))

        working = apply_differencing(values, self.order.d, self.order.D, self.order.s)
        estimation = estimate_parameters(working, self.order, self.settings, model_name)
        coefficients = CoefficientVector.from_array(estimation.params, self.order, self.settings.include_intercept)
        result = FittedSARIMA(
            self.order, coefficients, working, estimation.quality, estimation.objective, estimation.n_evaluations
        )
        log_fit_result(model_name, estimation.quality.value, estimation.objective, coefficients.to_dict())

        self.result = result
        self._train_values = values
        self._train_index = series.index if isinstance(series, (pd.Series, pd.DataFrame)) else None
        self.fitted = True
        return result

    def predict(self, forecast_steps: Optional[int] = None) -> pd.Series:
        """
        Forecast from the last fit in the original scale.

        Args:
            forecast_steps: Horizon. Defaults to self.forecast_steps.

        Returns:
            Series of forecasts whose index continues the training index.

        Raises:
            NotFittedError: If the model has not been fitted.
            InvalidInputError: If forecast_steps is not a positive integer.
        """
        if not self.fitted or self.result is None:
            raise NotFittedError("Model must be fitted before predicting.")
        steps = _validate_steps(forecast_steps if forecast_steps is not None else self.forecast_steps)
        values = self.result.forecast(steps, self._train_values)
        return pd.Series(values, index=self._future_index(steps), name="forecast")

    def _future_index(self, steps: int) -> pd.Index:
        """Index for ``steps`` points after the training data."""
        index = self._train_index
        if isinstance(index, pd.DatetimeIndex) and index.freq is not None and len(index) > 0:
            return pd.date_range(start=index[-1] + index.freq, periods=steps, freq=index.freq)
        if isinstance(index, pd.RangeIndex) and len(index) > 0:
            return pd.RangeIndex(start=index[-1] + index.step, stop=index[-1] + index.step * (steps + 1), step=index.step)
        n = len(self._train_values)
        return pd.RangeIndex(start=n, stop=n + steps)
