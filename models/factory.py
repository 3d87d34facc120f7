"""Factory building forecasters by name, either from explicit arguments or from a config.

Importing this module registers the ARIMA and SARIMA forecasters.
"""

import logging
from typing import Any, Dict, List, Optional

import models.arima  # noqa: F401
import models.sarima  # noqa: F401
from models.base import TSForecaster
from models.errors import ForecastingError
from models.model_registry import create_model, get_model_class, list_registered_models
from utils.config_utils import get_estimation_settings, get_sarima_order

logger = logging.getLogger(__name__)


class ModelFactory:
    """Creates registered forecasters."""

    @staticmethod
    def create(model_name: str, *args: Any, **kwargs: Any) -> TSForecaster:
        """
        Create a registered forecaster.

        Args:
            model_name: Registered name ('arima' or 'sarima').
            *args: Constructor arguments (order, settings, forecast_steps).
            **kwargs: Constructor keyword arguments.

        Returns:
            The new, unfitted forecaster.

        Raises:
            ValueError: If model_name is empty or not registered.
            ForecastingError: If the forecaster rejects its order (InvalidOrderError).
            RuntimeError: If the constructor rejects any other argument.
        """
        model_class = get_model_class(model_name)
        try:
            model = create_model(model_name, *args, **kwargs)
        except ForecastingError:
            raise
        except (ValueError, TypeError) as e:
            logger.error(f"Failed to create model '{model_name}' ({model_class.__name__}): {str(e)}", exc_info=True)
            raise RuntimeError(f"Model creation failed: {str(e)}")
        logger.info(f"Created model '{model_name}' with order {getattr(model, 'order', None)}")
        return model

    @staticmethod
    def from_config(model_name: str, config: Dict, forecast_steps: Optional[int] = None) -> TSForecaster:
        """
        Create a forecaster with the order and estimator settings of a validated configuration.

        Args:
            model_name: Registered name.
            config: Configuration as returned by ``utils.config_utils.validate_config``.
            forecast_steps: Default horizon of ``predict``; the configured steps when None.

        Returns:
            The new, unfitted forecaster.
        """
        steps = forecast_steps if forecast_steps is not None else config["forecast"]["steps"]
        return ModelFactory.create(model_name, get_sarima_order(config), get_estimation_settings(config), steps)

    @staticmethod
    def list_models() -> List[str]:
        """Registered model names."""
        return list_registered_models()
