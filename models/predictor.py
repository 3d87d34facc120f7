"""Module combining trend regression and SARIMA forecasting for a case-count series.

CasePredictor holds one series of case counts (and optional covariates such as rainfall
or temperature, one row per period). The regression explains the counts from the
covariates, or from the time index when there are none; the SARIMA model forecasts
future counts in the original scale.
"""

import logging
from typing import Any, Optional

import numpy as np

from models.errors import InvalidInputError, NotFittedError
from models.regression import LinearRegression
from models.sarima import EstimationSettings, FittedSARIMA, SARIMAForecaster, SeasonalOrder
from utils.data_utils import build_time_covariates, load_cases

logger = logging.getLogger(__name__)


class CasePredictor:
    """Regression and SARIMA models fitted on one case-count series."""

    def __init__(self, cases: Any, covariates: Optional[Any] = None) -> None:
        """
        Args:
            cases: Case counts, one per period. Required, non-empty.
            covariates: Optional matrix with one row per period. Ignored unless its row
                count equals the number of cases.

        Raises:
            InvalidInputError: If cases is missing, empty or not finite.
        """
        if cases is None:
            raise InvalidInputError("cases required")
        self._cases = np.asarray(cases, dtype=float).ravel()
        if self._cases.size == 0:
            raise InvalidInputError("cases required")
        if not np.all(np.isfinite(self._cases)):
            raise InvalidInputError("cases cannot contain NaN or infinite values.")

        self._covariates: Optional[np.ndarray] = None
        if covariates is not None:
            matrix = np.asarray(covariates, dtype=float)
            if matrix.ndim == 1:
                matrix = matrix.reshape(-1, 1)
            if matrix.ndim == 2 and matrix.shape[0] == self._cases.size:
                self._covariates = matrix.copy()
            else:
                logger.warning(
                    f"Ignoring covariates with shape {matrix.shape}: expected {self._cases.size} rows."
                )

        self.regression: Optional[LinearRegression] = None
        self.sarima: Optional[FittedSARIMA] = None

    @classmethod
    def from_file(cls, path: str) -> "CasePredictor":
        """Build a predictor from a delimited case file (see utils.data_utils.load_cases)."""
        cases, covariates = load_cases(path)
        return cls(cases, covariates)

    @property
    def cases(self) -> np.ndarray:
        return self._cases.copy()

    @property
    def covariates(self) -> Optional[np.ndarray]:
        return None if self._covariates is None else self._covariates.copy()

    def _design(self) -> np.ndarray:
        if self._covariates is None:
            return build_time_covariates(self._cases.size)
        return self._covariates

    def fit_regression(self) -> LinearRegression:
        """Fit OLS of the cases on the covariates, or on the time index when there are none."""
        self.regression = LinearRegression().fit(self._design(), self._cases)
        logger.info(
            f"Fitted regression: intercept={self.regression.intercept:.4f}, R^2={self.regression.r_squared:.4f}"
        )
        return self.regression

    def fitted_values(self) -> np.ndarray:
        """Regression predictions on the predictor's own design."""
        if self.regression is None:
            raise NotFittedError("Fit the regression first.")
        return self.regression.predict(self._design())

    def fit_sarima(
        self, order: Optional[SeasonalOrder] = None, settings: Optional[EstimationSettings] = None
    ) -> FittedSARIMA:
        """
        Fit SARIMA(p,d,q)(P,D,Q)s to the cases.

        Monthly data with yearly seasonality typically uses s=12, e.g. (1,0,1)(1,0,1)12,
        which is the default order.
        """
        self.sarima = SARIMAForecaster(order, settings).fit(self._cases)
        return self.sarima

    def forecast_sarima(self, steps: int) -> np.ndarray:
        """
        Forecast the next ``steps`` case counts in the original scale.

        Raises:
            NotFittedError: If fit_sarima has not been called.
        """
        if self.sarima is None:
            raise NotFittedError("Fit SARIMA first.")
        if self.sarima.requires_integration:
            return self.sarima.forecast(steps, self._cases)
        return self.sarima.forecast(steps)
