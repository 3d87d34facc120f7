"""Ordinary least squares linear regression.

Model: y = b0 + b1*x1 + ... + bk*xk, solved in closed form through the normal equation
b = (X'X)^-1 X'y, where X carries a leading column of ones for the intercept. The
factorisation is an LU decomposition with partial pivoting; a vanishing pivot means the
design is singular and the fit is refused rather than regularised.
"""

import logging
import warnings
from typing import Any, Dict, Union

import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve

from models.errors import DimensionMismatchError, InvalidInputError, NotFittedError, SingularDesignError

logger = logging.getLogger(__name__)

# Pivots at or below this fraction of the largest pivot mark X'X as singular.
SINGULARITY_THRESHOLD = 1e-11


class LinearRegression:
    """Linear model fitted by ordinary least squares."""

    def __init__(self) -> None:
        self._coefficients: np.ndarray = np.empty(0)
        self._r_squared = 0.0
        self._adjusted_r_squared = 0.0
        self.n_observations = 0
        self.n_features = 0
        self.fitted = False

    def fit(self, X: Any, y: Any) -> "LinearRegression":
        """
        Fit the model on a design matrix and a response vector.

        Args:
            X: Feature matrix with shape (n, k), no intercept column. A 1-D array is
                treated as a single feature column.
            y: Response vector of length n.

        Returns:
            The fitted instance.

        Raises:
            InvalidInputError: If X or y is missing, empty, non-finite or the row counts differ.
            SingularDesignError: If X'X cannot be inverted.
        """
        if X is None or y is None:
            raise InvalidInputError("X and y must be non-null, same length, and non-empty.")
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float).ravel()
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if X.ndim != 2 or X.shape[0] == 0 or X.shape[1] == 0 or X.shape[0] != y.shape[0]:
            raise InvalidInputError("X and y must be non-null, same length, and non-empty.")
        if not (np.all(np.isfinite(X)) and np.all(np.isfinite(y))):
            raise InvalidInputError("X and y cannot contain NaN or infinite values.")

        n, k = X.shape
        design = np.column_stack([np.ones(n), X])
        xtx = design.T @ design
        xty = design.T @ y

        with warnings.catch_warnings():
            # lu_factor warns on an exactly zero pivot; the pivot check below reports it.
            warnings.simplefilter("ignore", LinAlgWarning)
            lu, piv = lu_factor(xtx)
        pivots = np.abs(np.diag(lu))
        if pivots.min() <= SINGULARITY_THRESHOLD * max(1.0, pivots.max()):
            logger.debug(f"Singular design: n={n}, k={k}, smallest pivot={pivots.min():.3e}")
            raise SingularDesignError("Design matrix X'X is singular; cannot compute (X'X)^-1.")

        self._coefficients = lu_solve((lu, piv), xty)
        self.n_observations = n
        self.n_features = k
        self.fitted = True

        fitted_values = design @ self._coefficients
        ss_tot = float(np.sum((y - y.mean()) ** 2))
        ss_res = float(np.sum((y - fitted_values) ** 2))
        self._r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0
        p = k + 1
        if n > p:
            self._adjusted_r_squared = 1.0 - (1.0 - self._r_squared) * (n - 1) / (n - p)
        else:
            self._adjusted_r_squared = self._r_squared
        logger.debug(f"Fitted OLS on n={n}, k={k}: R^2={self._r_squared:.4f}")
        return self

    def _check_fitted(self) -> None:
        if not self.fitted:
            raise NotFittedError("LinearRegression must be fitted before use.")

    @property
    def intercept(self) -> float:
        """Intercept b0."""
        self._check_fitted()
        return float(self._coefficients[0])

    def coefficient(self, i: int) -> float:
        """Slope for feature ``i`` (0-based), i.e. b(i+1)."""
        self._check_fitted()
        if not 0 <= i < self.n_features:
            raise IndexError(f"Feature index {i} out of range for {self.n_features} features.")
        return float(self._coefficients[i + 1])

    @property
    def coefficients(self) -> np.ndarray:
        """Copy of all coefficients [b0, b1, ..., bk]."""
        self._check_fitted()
        return self._coefficients.copy()

    @property
    def r_squared(self) -> float:
        self._check_fitted()
        return self._r_squared

    @property
    def adjusted_r_squared(self) -> float:
        self._check_fitted()
        return self._adjusted_r_squared

    def predict(self, X: Any) -> Union[float, np.ndarray]:
        """
        Predict the response for one feature row or a batch of rows.

        Args:
            X: A 1-D row of length k, or a 2-D array with k columns.

        Returns:
            A float for a single row, an array with one value per row for a batch.

        Raises:
            NotFittedError: If the model has not been fitted.
            DimensionMismatchError: If the row length differs from the fitted feature count.
        """
        self._check_fitted()
        X = np.asarray(X, dtype=float)
        if X.ndim == 1:
            if X.shape[0] != self.n_features:
                raise DimensionMismatchError(
                    f"Expected {self.n_features} features per row, got {X.shape[0]}."
                )
            return float(self._coefficients[0] + X @ self._coefficients[1:])
        if X.ndim != 2 or X.shape[1] != self.n_features:
            raise DimensionMismatchError(
                f"Expected rows with {self.n_features} features, got shape {X.shape}."
            )
        return self._coefficients[0] + X @ self._coefficients[1:]

    def summary(self) -> Dict[str, Any]:
        """Fitted statistics as plain Python values."""
        self._check_fitted()
        return {
            "intercept": self.intercept,
            "rSquared": self._r_squared,
            "adjustedRSquared": self._adjusted_r_squared,
            "coefficients": [float(c) for c in self._coefficients],
        }
