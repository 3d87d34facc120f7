"""Base module for time series forecasting models.

This module defines the abstract base class for the statistical forecasters. It provides
initialization checks, the fitted-state guard shared by all models, and a mean squared
error evaluation used for hold-out checks.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import numpy as np

from models.errors import NotFittedError

logger = logging.getLogger(__name__)


class TSForecaster(ABC):
    """Abstract base class for time series forecasting models."""

    # Class attribute indicating if the model is univariate
    is_univariate: bool = True

    def __init__(self, model_params: Dict[str, Any], forecast_steps: int) -> None:
        """
        Initialize the forecaster with model-specific parameters.

        Args:
            model_params: Model-specific parameters (e.g., p, d, q for ARIMA).
            forecast_steps: Default number of steps to forecast.

        Raises:
            ValueError: If model_params is not a dictionary or forecast_steps is not positive.
        """
        if not isinstance(model_params, dict):
            raise ValueError("model_params must be a dictionary.")
        if isinstance(forecast_steps, bool) or not isinstance(forecast_steps, int) or forecast_steps < 1:
            raise ValueError("forecast_steps must be positive.")

        self.model_params = model_params
        self.forecast_steps = forecast_steps
        self.fitted = False
        logger.info(f"Initialized {self.__class__.__name__} with params: {model_params}")

    def check_fitted(self) -> None:
        """
        Raise if the model has not been fitted.

        Raises:
            NotFittedError: If fit has not completed.
        """
        if not self.fitted:
            raise NotFittedError(f"{self.__class__.__name__} must be fitted before use.")

    def evaluate(self, y_true: Any, y_pred: Any) -> float:
        """
        Calculate Mean Squared Error (MSE) between true and predicted values.

        Args:
            y_true: True values.
            y_pred: Predicted values.

        Returns:
            Mean Squared Error value. Returns inf if inputs are empty or their lengths differ.
        """
        y_true = np.asarray(y_true, dtype=float).ravel()
        y_pred = np.asarray(y_pred, dtype=float).ravel()
        if y_true.size == 0 or y_pred.size == 0:
            logger.warning("Empty inputs provided for evaluation.")
            return float("inf")
        if y_true.size != y_pred.size:
            logger.warning(f"Cannot evaluate: {y_true.size} true values vs {y_pred.size} predictions.")
            return float("inf")
        return float(np.mean((y_true - y_pred) ** 2))

    @abstractmethod
    def fit(self, series: Any) -> Any:
        """Fit the model to a training series and set ``fitted``."""

    @abstractmethod
    def predict(self, forecast_steps: Optional[int] = None) -> Any:
        """Forecast ``forecast_steps`` values (default: ``self.forecast_steps``) after the training data."""
