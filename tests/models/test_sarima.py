"""Unit tests for the SARIMA estimator and forecaster.

Covers order validation, the conditional-sum-of-squares objective, the default/seed
parameter vector, the observable fallback when optimisation is skipped or fails, and
forecasting on the differenced and original scales.
"""

import logging
from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

import models.sarima as sarima_module
from models.errors import (
    InvalidInputError,
    InvalidOrderError,
    MissingSeriesForIntegrationError,
    NotFittedError,
)
from models.sarima import (
    CoefficientVector,
    EstimationSettings,
    FitQuality,
    SARIMAForecaster,
    SeasonalOrder,
    compute_innovations,
    conditional_sum_of_squares,
    default_parameters,
    estimate_parameters,
)
from utils.data_utils import sample_cases

SAMPLE = [
    45, 52, 61, 78, 88, 95, 102, 98, 85, 72, 58, 48, 50, 55, 65, 82, 92, 100, 108, 104, 88, 75, 62, 51,
    48, 54, 68, 85, 94, 103, 112, 106, 90, 78, 64, 52, 52, 58, 70, 86, 96, 105, 115, 108, 92, 80, 66, 55,
]


# --- Test Helpers & Fixtures ---

def _ar1_series(phi: float, n: int = 300, seed: int = 3) -> np.ndarray:
    rng = np.random.default_rng(seed)
    noise = rng.normal(size=n)
    series = np.zeros(n)
    for t in range(1, n):
        series[t] = phi * series[t - 1] + noise[t]
    return series


@pytest.fixture(scope="module")
def sample_fit():
    return SARIMAForecaster(SeasonalOrder(1, 0, 1, 1, 0, 1, 12)).fit(SAMPLE)


# --- SeasonalOrder ---

@pytest.mark.parametrize("field", ["p", "d", "q", "P", "D", "Q", "s"])
def test_negative_order_component_fails(field):
    params = {"p": 1, "d": 0, "q": 1, "P": 1, "D": 0, "Q": 1, "s": 12, field: -1}
    with pytest.raises(InvalidOrderError, match=field):
        SeasonalOrder(**params)


@pytest.mark.parametrize("value", [1.5, "1", None, True])
def test_non_integer_order_component_fails(value):
    with pytest.raises(InvalidOrderError):
        SeasonalOrder(p=value)


def test_forecaster_rejects_negative_order():
    with pytest.raises(InvalidOrderError):
        SARIMAForecaster({"p": 1, "d": 0, "q": -2})


def test_order_derived_values():
    order = SeasonalOrder(2, 1, 1, 1, 1, 2, 12)
    assert order.seasonal
    assert order.max_lag == max(2 + 12, 1 + 24)
    assert order.n_params == 6
    assert order.as_tuple() == (2, 1, 1, 1, 1, 2, 12)
    assert str(order) == "SARIMA(2,1,1)(1,1,2)12"


@pytest.mark.parametrize("s", [0, 1])
def test_short_season_has_no_seasonal_lag(s):
    order = SeasonalOrder(2, 0, 1, 3, 1, 3, s)
    assert not order.seasonal
    assert order.max_lag == 2


def test_from_params_uses_defaults():
    assert SeasonalOrder.from_params({"d": 1}) == SeasonalOrder(1, 1, 1, 1, 0, 1, 12)


# --- CoefficientVector ---

def test_coefficient_vector_blocks():
    order = SeasonalOrder(2, 0, 1, 1, 0, 2, 12)
    vector = CoefficientVector.from_array([0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 7.0], order, include_intercept=True)
    assert vector.ar == (0.1, 0.2)
    assert vector.ma == (0.3,)
    assert vector.seasonal_ar == (0.4,)
    assert vector.seasonal_ma == (0.5, 0.6)
    assert vector.intercept == 7.0
    np.testing.assert_allclose(vector.as_array(), [0.1, 0.2, 0.3, 0.4, 0.5, 0.6])


def test_coefficient_vector_length_mismatch():
    with pytest.raises(InvalidInputError):
        CoefficientVector.from_array([0.1, 0.2], SeasonalOrder(1, 0, 1, 1, 0, 1, 12))


# --- Objective ---

def test_innovations_before_start_are_zero():
    order = SeasonalOrder(1, 0, 1, 0, 0, 0, 0)
    series = np.array([1.0, 2.0, 3.0, 4.0])
    coefficients = CoefficientVector((0.5,), (0.25,), (), ())
    innovations = compute_innovations(series, coefficients, order, start=2)
    assert innovations[0] == 0.0 and innovations[1] == 0.0
    # t=2: pred = 0.5*2 + 0.25*0 = 1.0; t=3: pred = 0.5*3 + 0.25*2 = 2.0
    np.testing.assert_allclose(innovations[2:], [2.0, 2.0])


def test_css_is_sum_of_squared_innovations():
    order = SeasonalOrder(1, 0, 1, 0, 0, 0, 0)
    series = np.array([1.0, 2.0, 3.0, 4.0])
    assert conditional_sum_of_squares(np.array([0.5, 0.25]), series, order, 2) == pytest.approx(8.0)


def test_css_prefers_generating_coefficient():
    series = _ar1_series(0.6)
    order = SeasonalOrder(1, 0, 0, 0, 0, 0, 0)
    near = conditional_sum_of_squares(np.array([0.6]), series, order, 1)
    far = conditional_sum_of_squares(np.array([-0.5]), series, order, 1)
    assert near < far


def test_css_does_not_mutate_inputs():
    series = np.array(SAMPLE, dtype=float)
    params = np.array([0.1, 0.1, 0.1, 0.1])
    before = series.copy(), params.copy()
    conditional_sum_of_squares(params, series, SeasonalOrder(), 13)
    np.testing.assert_array_equal(series, before[0])
    np.testing.assert_array_equal(params, before[1])


# --- Default parameters ---

def test_default_parameters_without_ar_block():
    params = default_parameters(np.arange(30, dtype=float), SeasonalOrder(0, 0, 2, 1, 0, 1, 12))
    np.testing.assert_allclose(params, [0.1, 0.1, 0.1, 0.1])


def test_default_parameters_seed_ar_block_with_ols():
    series = _ar1_series(0.6)
    params = default_parameters(series, SeasonalOrder(1, 0, 1, 0, 0, 0, 0))
    assert params[0] == pytest.approx(0.6, abs=0.15)
    assert params[1] == pytest.approx(0.1)


def test_default_parameters_zero_disabled_seasonal_blocks_and_intercept():
    settings = EstimationSettings(include_intercept=True)
    params = default_parameters(np.arange(10, dtype=float) % 3, SeasonalOrder(0, 0, 1, 2, 0, 1, 0), settings)
    np.testing.assert_allclose(params, [0.1, 0.0, 0.0, 0.0, 0.0])


def test_default_parameters_keep_initial_value_when_seed_regression_is_singular():
    params = default_parameters(np.full(10, 3.0), SeasonalOrder(1, 0, 0, 0, 0, 0, 0))
    np.testing.assert_allclose(params, [0.1])


# --- Estimation ---

def test_estimation_recovers_ar1_coefficient():
    result = estimate_parameters(_ar1_series(0.6), SeasonalOrder(1, 0, 0, 0, 0, 0, 0))
    assert result.quality is FitQuality.OPTIMIZED
    assert result.params[0] == pytest.approx(0.6, abs=0.15)
    assert result.n_evaluations > 0


def test_estimation_stays_within_bounds():
    """A bound tighter than the generating coefficient pins the estimate to the bound."""
    settings = EstimationSettings(coefficient_bound=0.3)
    result = estimate_parameters(_ar1_series(0.6), SeasonalOrder(1, 0, 0, 0, 0, 0, 0), settings)
    assert result.quality is FitQuality.OPTIMIZED
    assert abs(result.params[0]) <= 0.3 + 1e-9
    assert result.params[0] == pytest.approx(0.3, abs=1e-3)


def test_insufficient_data_falls_back_to_defaults(caplog):
    order = SeasonalOrder(1, 0, 1, 1, 0, 1, 12)
    series = np.arange(14, dtype=float)
    with caplog.at_level(logging.WARNING):
        result = estimate_parameters(series, order)
    assert result.quality is FitQuality.DEFAULTED
    np.testing.assert_allclose(result.params, default_parameters(series, order))
    assert "fell back to default coefficients" in caplog.text


def test_no_free_parameters_falls_back():
    result = estimate_parameters(np.arange(20, dtype=float), SeasonalOrder(0, 0, 0, 0, 0, 0, 0))
    assert result.quality is FitQuality.DEFAULTED
    assert result.params.size == 0


def test_optimizer_exception_falls_back(mocker, caplog):
    mocker.patch("models.sarima.minimize", side_effect=ValueError("boom"))
    series = np.array(SAMPLE, dtype=float)
    order = SeasonalOrder()
    with caplog.at_level(logging.WARNING):
        result = estimate_parameters(series, order)
    assert result.quality is FitQuality.DEFAULTED
    np.testing.assert_allclose(result.params, default_parameters(series, order))
    assert "optimizer raised: boom" in caplog.text


def test_optimizer_non_convergence_falls_back(mocker):
    mocker.patch(
        "models.sarima.minimize",
        return_value=SimpleNamespace(
            success=False, message="Maximum number of function evaluations has been exceeded.",
            nfev=2000, x=np.zeros(4), fun=1.0,
        ),
    )
    result = estimate_parameters(np.array(SAMPLE, dtype=float), SeasonalOrder())
    assert result.quality is FitQuality.DEFAULTED
    assert result.n_evaluations == 2000


def test_evaluation_budget_is_passed_to_optimizer(mocker):
    spy = mocker.spy(sarima_module, "minimize")
    estimate_parameters(np.array(SAMPLE, dtype=float), SeasonalOrder(), EstimationSettings(max_evaluations=50))
    assert spy.call_args.kwargs["options"]["maxfev"] == 50
    assert spy.call_args.kwargs["method"] == "Powell"


# --- Fitting ---

def test_sample_fit_block_sizes(sample_fit):
    coefficients = sample_fit.coefficients
    sizes = tuple(len(block) for block in (
        coefficients.ar, coefficients.ma, coefficients.seasonal_ar, coefficients.seasonal_ma))
    assert sizes == (1, 1, 1, 1)
    assert coefficients.intercept == 0.0


def test_sample_forecast_is_finite_and_plausible(sample_fit):
    """Golden smoke test on the bundled monthly series."""
    forecast = sample_fit.forecast(6)
    assert forecast.shape == (6,)
    assert np.all(np.isfinite(forecast))
    assert np.all((forecast > 40) & (forecast < 130))


def test_sample_fit_reports_order(sample_fit):
    assert (sample_fit.p, sample_fit.d, sample_fit.q) == (1, 0, 1)
    assert (sample_fit.seasonal_p, sample_fit.seasonal_d, sample_fit.seasonal_q, sample_fit.season_length) == (1, 0, 1, 12)
    assert sample_fit.fit_quality in (FitQuality.OPTIMIZED, FitQuality.DEFAULTED)
    assert np.isfinite(sample_fit.objective)


def test_working_series_is_a_copy(sample_fit):
    working = sample_fit.working_series
    working[:] = 0.0
    np.testing.assert_allclose(sample_fit.working_series, SAMPLE)


def test_fit_accepts_pandas_inputs():
    series = pd.Series(SAMPLE, dtype=float)
    fitted = SARIMAForecaster(SeasonalOrder(1, 0, 0, 1, 0, 0, 12)).fit(series.to_frame("cases"))
    assert fitted.forecast(3).shape == (3,)


@pytest.mark.parametrize("series", [[], [1.0, np.nan, 3.0], [1.0, "x"], None])
def test_fit_rejects_invalid_series(series):
    with pytest.raises(InvalidInputError):
        SARIMAForecaster().fit(series)


def test_fit_rejects_series_exhausted_by_differencing():
    with pytest.raises(InvalidInputError, match="too short"):
        SARIMAForecaster(SeasonalOrder(0, 0, 0, 0, 1, 0, 12)).fit(np.arange(10, dtype=float))


def test_short_series_fit_is_defaulted_but_forecasts():
    fitted = SARIMAForecaster(SeasonalOrder()).fit(SAMPLE[:10])
    assert fitted.fit_quality is FitQuality.DEFAULTED
    assert np.all(np.isfinite(fitted.forecast(4)))


def test_intercept_slot_is_estimated():
    series = 20.0 + _ar1_series(0.5, n=200)
    settings = EstimationSettings(include_intercept=True)
    fitted = SARIMAForecaster(SeasonalOrder(1, 0, 0, 0, 0, 0, 0), settings).fit(series)
    assert fitted.coefficients.as_array(include_intercept=True).size == 2
    # Mean of an AR(1) with constant c is c / (1 - phi).
    phi, c = fitted.coefficients.ar[0], fitted.coefficients.intercept
    assert c / (1.0 - phi) == pytest.approx(series.mean(), rel=0.1)


# --- Forecasting ---

def test_forecast_differenced_uses_recursion():
    """AR(1) with no MA: each forecast is phi times the previous value."""
    fitted = SARIMAForecaster(SeasonalOrder(1, 0, 0, 0, 0, 0, 0)).fit(_ar1_series(0.6))
    phi = fitted.coefficients.ar[0]
    last = fitted.working_series[-1]
    np.testing.assert_allclose(fitted.forecast_differenced(3), [phi * last, phi ** 2 * last, phi ** 3 * last])


@pytest.mark.parametrize("steps", [0, -1, 2.5, True])
def test_forecast_rejects_invalid_steps(sample_fit, steps):
    with pytest.raises(InvalidInputError):
        sample_fit.forecast(steps)


def test_first_difference_forecast_continues_last_level():
    """With d = 1 the first forecast is the last observation plus the differenced forecast."""
    fitted = SARIMAForecaster(SeasonalOrder(1, 1, 0, 0, 0, 0, 0)).fit(SAMPLE)
    differenced = fitted.forecast_differenced(4)
    forecast = fitted.forecast(4, SAMPLE)
    assert forecast[0] == pytest.approx(SAMPLE[-1] + differenced[0])
    np.testing.assert_allclose(forecast, SAMPLE[-1] + np.cumsum(differenced))


@pytest.mark.parametrize("d, series", [
    (1, np.full(30, 7.0)),
    (2, 2.0 + 3.0 * np.arange(30)),
    (3, 1.0 + 0.5 * np.arange(30) ** 2),
])
def test_pure_integration_continues_trend_exactly(d, series):
    """SARIMA(0,d,0) forecasts a zero differenced value, i.e. the polynomial trend continues."""
    n = series.size
    fitted = SARIMAForecaster(SeasonalOrder(0, d, 0, 0, 0, 0, 0)).fit(series)
    t = np.arange(n, n + 5, dtype=float)
    if d == 1:
        expected = np.full(5, 7.0)
    elif d == 2:
        expected = 2.0 + 3.0 * t
    else:
        expected = 1.0 + 0.5 * t ** 2
    np.testing.assert_allclose(fitted.forecast(5, series), expected, rtol=1e-9)


def test_integration_requires_original_series():
    fitted = SARIMAForecaster(SeasonalOrder(1, 1, 0, 0, 0, 0, 0)).fit(SAMPLE)
    assert fitted.requires_integration
    with pytest.raises(MissingSeriesForIntegrationError):
        fitted.forecast(3)


def test_seasonal_and_regular_differencing_forecast_is_finite():
    fitted = SARIMAForecaster(SeasonalOrder(1, 1, 1, 1, 1, 0, 12)).fit(SAMPLE)
    forecast = fitted.forecast(12, SAMPLE)
    assert np.all(np.isfinite(forecast))
    assert forecast.shape == (12,)


# --- Forecaster predict ---

def test_predict_before_fit_raises():
    with pytest.raises(NotFittedError, match="fitted before predicting"):
        SARIMAForecaster().predict()


def test_predict_continues_range_index():
    model = SARIMAForecaster(SeasonalOrder(1, 1, 0, 0, 0, 0, 0), forecast_steps=3)
    model.fit(SAMPLE)
    predictions = model.predict()
    assert list(predictions.index) == [48, 49, 50]
    np.testing.assert_allclose(predictions.to_numpy(), model.result.forecast(3, SAMPLE))


def test_predict_continues_datetime_index():
    index = pd.date_range("2020-01-01", periods=48, freq="MS")
    model = SARIMAForecaster(SeasonalOrder(1, 0, 0, 1, 0, 0, 12))
    model.fit(pd.Series(sample_cases(), index=index))
    predictions = model.predict(2)
    assert list(predictions.index) == list(pd.date_range("2024-01-01", periods=2, freq="MS"))
