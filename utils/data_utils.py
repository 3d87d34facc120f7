"""Module for preparing case-count data for the forecasting models.

This module provides the lagged design matrix used to seed autoregressive coefficients,
the time-index covariates used for trend regression, the tabular text loader for case
files, and the bundled sample series.
"""

import logging
import os
import re
from typing import List, Optional, Tuple

import numpy as np

from models.errors import InvalidInputError

logger = logging.getLogger(__name__)

# Synthetic monthly dengue case counts, four years with yearly seasonality.
SAMPLE_CASES: Tuple[float, ...] = (
    45, 52, 61, 78, 88, 95, 102, 98, 85, 72, 58, 48,
    50, 55, 65, 82, 92, 100, 108, 104, 88, 75, 62, 51,
    48, 54, 68, 85, 94, 103, 112, 106, 90, 78, 64, 52,
    52, 58, 70, 86, 96, 105, 115, 108, 92, 80, 66, 55,
)

_FIELD_SEPARATOR = re.compile(r"[,;\t]+")


def sample_cases() -> np.ndarray:
    """Return a fresh copy of the sample series."""
    return np.array(SAMPLE_CASES, dtype=float)


def create_lagged_matrix(data: np.ndarray, n_lags: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Create an autoregressive design (X, y) from a univariate series.

    Row ``j`` of X holds ``data[t-1], ..., data[t-n_lags]`` for ``t = n_lags + j`` and
    ``y[j] = data[t]``.

    Args:
        data: 1-D series.
        n_lags: Number of lagged values per row.

    Returns:
        Tuple of two NumPy arrays:
            - X: Lagged values with shape (len(data) - n_lags, n_lags).
            - y: Targets with shape (len(data) - n_lags,).

    Raises:
        InvalidInputError: If n_lags is not positive or the series is not longer than n_lags.
    """
    data = np.asarray(data, dtype=float).ravel()
    if not isinstance(n_lags, (int, np.integer)) or n_lags < 1:
        raise InvalidInputError("n_lags must be a positive integer.")
    if len(data) <= n_lags:
        raise InvalidInputError(
            f"data length ({len(data)}) is insufficient for n_lags ({n_lags})."
        )

    n_samples = len(data) - n_lags
    X = np.empty((n_samples, n_lags))
    for j in range(n_lags):
        X[:, j] = data[n_lags - 1 - j : len(data) - 1 - j]
    y = data[n_lags:].copy()
    logger.debug(f"Created lagged matrix: n_samples={n_samples}, n_lags={n_lags}")
    return X, y


def build_time_covariates(n: int) -> np.ndarray:
    """Single-column design holding the time index 0..n-1."""
    return np.arange(n, dtype=float).reshape(-1, 1)


def parse_case_lines(lines: List[str]) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Parse case records from text lines.

    Each record is one line: the first field is the case count, any further fields are
    covariates. Fields are separated by commas, semicolons or tabs. Blank lines, lines
    starting with ``#`` and lines that do not parse as numbers are skipped.

    Args:
        lines: Raw text lines.

    Returns:
        Tuple of the case counts and the covariate matrix. The covariate matrix is None
        unless every record carries the same, non-zero number of covariates.

    Raises:
        InvalidInputError: If no record could be parsed.
    """
    cases: List[float] = []
    covariates: List[List[float]] = []
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = [part.strip() for part in _FIELD_SEPARATOR.split(line) if part.strip()]
        try:
            values = [float(part) for part in parts]
        except ValueError:
            logger.debug(f"Skipping non-numeric line {line_number}: {line!r}")
            continue
        if not values:
            continue
        cases.append(values[0])
        covariates.append(values[1:])

    if not cases:
        raise InvalidInputError("No case records found.")

    widths = {len(row) for row in covariates}
    if len(widths) == 1 and widths != {0}:
        cov_matrix: Optional[np.ndarray] = np.array(covariates, dtype=float)
    else:
        if widths != {0}:
            logger.warning("Covariate columns are ragged across records; ignoring covariates.")
        cov_matrix = None
    logger.info(f"Parsed {len(cases)} case records (covariates: {0 if cov_matrix is None else cov_matrix.shape[1]})")
    return np.array(cases, dtype=float), cov_matrix


def load_cases(path: str) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Load case counts and optional covariates from a delimited text file.

    Args:
        path: Path to the file.

    Returns:
        Tuple of case counts and covariates (or None), see ``parse_case_lines``.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidInputError: If the file is empty or holds no parseable record.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Case file not found: {path}")
    with open(path, "r", encoding="utf-8") as file:
        lines = file.read().splitlines()
    if not lines:
        raise InvalidInputError(f"Case file '{path}' is empty.")
    logger.info(f"Loading cases from {path}")
    return parse_case_lines(lines)
