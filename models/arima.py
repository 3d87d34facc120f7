"""Module for the non-seasonal ARIMA time series forecasting model."""

from models.model_registry import register_model
from models.sarima import SARIMAForecaster


@register_model("arima", is_univariate=True)
class ARIMAForecaster(SARIMAForecaster):
    """ARIMA(p,d,q): a SARIMA forecaster whose seasonal order is fixed to (0,0,0)0."""

    seasonal: bool = False
