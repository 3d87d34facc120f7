"""Module for logging model-fitting events in the forecasting framework.

This module provides the logging setup shared by the command line and HTTP entry points,
and functions to log the start and outcome of a fit and estimation fallbacks, ensuring
consistent log lines across the ARIMA and SARIMA forecasters.
"""

import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging(log_dir: Optional[str] = "results/logs", level: str = "INFO") -> None:
    """
    Configure logging to file and console.

    Args:
        log_dir: Directory to store the log file. If None, logs go to the console only.
        level: Logging level name (e.g., 'INFO', 'DEBUG').

    Raises:
        ValueError: If level is not a known logging level name.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid logging level: {level}")

    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_dir, "forecast.log")))
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, handlers=handlers, force=True)


def log_fit_start(model_name: str, order: Any, n_observations: int) -> None:
    """
    Log the start of a model fit.

    Args:
        model_name: Name of the model (e.g., 'arima', 'sarima').
        order: The model order being fitted.
        n_observations: Length of the training series.

    Raises:
        ValueError: If model_name is empty or n_observations is negative.
    """
    if not model_name:
        raise ValueError("model_name cannot be empty.")
    if not isinstance(n_observations, int) or n_observations < 0:
        raise ValueError("n_observations must be a non-negative integer.")

    logger.info(f"[{model_name}] Fitting {order} on {n_observations} observations")


def log_fit_result(model_name: str, quality: str, objective: float, coefficients: Dict[str, Any]) -> None:
    """
    Log the outcome of a model fit.

    Args:
        model_name: Name of the model.
        quality: Fit quality label ('optimized' or 'defaulted').
        objective: Conditional sum of squares at the fitted coefficients.
        coefficients: Fitted coefficient blocks.

    Raises:
        ValueError: If model_name or quality is empty or coefficients is not a dictionary.
    """
    if not model_name:
        raise ValueError("model_name cannot be empty.")
    if not quality:
        raise ValueError("quality cannot be empty.")
    if not isinstance(coefficients, dict):
        raise ValueError("coefficients must be a dictionary.")

    logger.info(f"[{model_name}] Fit {quality}. CSS: {float(objective):.6f}, coefficients={coefficients}")


def log_estimation_fallback(model_name: str, reason: str, exception: Optional[Exception] = None) -> None:
    """
    Log that estimation fell back to the default coefficient vector.

    Args:
        model_name: Name of the model.
        reason: Short description of why the optimizer result was not used.
        exception: Exception raised by the optimizer, if any.

    Raises:
        ValueError: If model_name or reason is empty.
    """
    if not model_name:
        raise ValueError("model_name cannot be empty.")
    if not reason:
        raise ValueError("reason cannot be empty.")

    if exception is not None:
        logger.warning(f"[{model_name}] Estimation fell back to default coefficients: {reason}: {str(exception)}",
                       exc_info=exception)
    else:
        logger.warning(f"[{model_name}] Estimation fell back to default coefficients: {reason}")
