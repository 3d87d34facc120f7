"""Name-based registry of the forecasters.

Forecaster classes register themselves with the ``register_model`` decorator when their
module is imported; the CLI and the factory then look them up by name ('arima',
'sarima').
"""

from typing import Any, Callable, Dict, List, Type

from models.base import TSForecaster

model_registry: Dict[str, Type[TSForecaster]] = {}
"""Registered forecaster classes keyed by model name."""


def register_model(name: str, is_univariate: bool = True) -> Callable:
    """
    Register a forecaster class under a name.

    The decorated class receives ``model_name`` (used as the prefix of its log lines) and
    ``is_univariate``.

    Args:
        name: Model name, unique within the registry.
        is_univariate: Whether the forecaster models a single series.

    Returns:
        Class decorator.

    Raises:
        ValueError: If name is empty or taken, or is_univariate is not a boolean.
        TypeError: If the decorated class does not derive from TSForecaster.
    """
    if not name:
        raise ValueError("Model name cannot be empty.")
    if name in model_registry:
        raise ValueError(f"Model '{name}' is already registered as {model_registry[name].__name__}.")
    if not isinstance(is_univariate, bool):
        raise ValueError("is_univariate must be a boolean.")

    def decorator(model_class: Type) -> Type:
        if not (isinstance(model_class, type) and issubclass(model_class, TSForecaster)):
            raise TypeError(f"{model_class!r} must be a subclass of TSForecaster to be registered.")
        model_class.model_name = name
        model_class.is_univariate = is_univariate
        model_registry[name] = model_class
        return model_class

    return decorator


def get_model_class(name: str) -> Type[TSForecaster]:
    """
    Look up a registered forecaster class.

    Raises:
        ValueError: If name is empty or not registered.
    """
    if not name:
        raise ValueError("Model name cannot be empty.")
    try:
        return model_registry[name]
    except KeyError:
        raise ValueError(f"Model '{name}' is not registered. Available models: {list_registered_models()}")


def create_model(name: str, *args: Any, **kwargs: Any) -> TSForecaster:
    """Instantiate the forecaster registered under ``name`` with the given constructor arguments."""
    return get_model_class(name)(*args, **kwargs)


def list_registered_models() -> List[str]:
    """Registered model names, sorted."""
    return sorted(model_registry)
