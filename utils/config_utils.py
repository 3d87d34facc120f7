"""Module for loading and validating configuration files in the forecasting framework.

This module provides utilities to load YAML configuration files and validate their structure
for the SARIMA order, the estimator settings, forecast horizons, the HTTP server and logging.
Every section is optional; missing values are filled from DEFAULT_CONFIG.
"""

import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml
from schema import And, Optional as SchemaOptional, Or, Schema, SchemaError

from models.sarima import EstimationSettings, SeasonalOrder

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "sarima": {"p": 1, "d": 0, "q": 1, "P": 1, "D": 0, "Q": 1, "s": 12},
    "estimation": {
        "coefficient_bound": 1.5,
        "max_evaluations": 2000,
        "initial_value": 0.1,
        "include_intercept": False,
    },
    "forecast": {"steps": 6, "min_steps": 1, "max_steps": 60},
    "server": {"host": "0.0.0.0", "port": 7000},
    "logging": {"log_dir": "results/logs", "level": "INFO"},
}

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigValidationError(Exception):
    """Compact, human-readable configuration validation error."""
    pass


def _compact_schema_error(err: Exception) -> str:
    """
    Turn a verbose SchemaError or YAMLError into a short, readable message.
    We try err.code first (often the clearest), then fallback to str(err).
    """
    msg = (getattr(err, "code", None) or str(err) or "").strip()
    return " ".join(msg.split())


def _order_component() -> And:
    return And(int, lambda x: not isinstance(x, bool) and x >= 0, error="SARIMA orders must be non-negative integers")


def _define_config_schema() -> Schema:
    """
    Define the schema for the configuration file.

    Returns:
        Schema for validating the full configuration.
    """
    return Schema({
        SchemaOptional("sarima"): {
            SchemaOptional("p"): _order_component(),
            SchemaOptional("d"): _order_component(),
            SchemaOptional("q"): _order_component(),
            SchemaOptional("P"): _order_component(),
            SchemaOptional("D"): _order_component(),
            SchemaOptional("Q"): _order_component(),
            SchemaOptional("s"): _order_component(),
        },
        SchemaOptional("estimation"): {
            SchemaOptional("coefficient_bound"): And(
                Or(int, float), lambda x: x > 0, error="`estimation.coefficient_bound` must be positive"
            ),
            SchemaOptional("max_evaluations"): And(
                int, lambda x: x > 0, error="`estimation.max_evaluations` must be a positive integer"
            ),
            SchemaOptional("initial_value"): Or(int, float),
            SchemaOptional("include_intercept"): bool,
        },
        SchemaOptional("forecast"): And(
            {
                SchemaOptional("steps"): And(int, lambda x: x > 0),
                SchemaOptional("min_steps"): And(int, lambda x: x > 0),
                SchemaOptional("max_steps"): And(int, lambda x: x > 0),
            },
            lambda d: d.get("min_steps", 1) <= d.get("max_steps", 60),
            error="`forecast.min_steps` must be less than or equal to `forecast.max_steps`",
        ),
        SchemaOptional("server"): {
            SchemaOptional("host"): And(str, len),
            SchemaOptional("port"): And(int, lambda x: 0 < x < 65536, error="`server.port` must be in 1..65535"),
        },
        SchemaOptional("logging"): {
            SchemaOptional("log_dir"): Or(None, And(str, len)),
            SchemaOptional("level"): And(
                str, lambda x: x.upper() in LOG_LEVELS, error=f"`logging.level` must be one of {LOG_LEVELS}"
            ),
        },
    })


def validate_config(config: Optional[Dict]) -> Dict:
    """
    Validate a configuration dictionary and fill in defaults.

    Args:
        config: Configuration dictionary loaded from YAML. None is treated as empty.

    Returns:
        Validated configuration with every section and key present.

    Raises:
        SchemaError: If the configuration does not match the schema.
    """
    config = config or {}
    try:
        _define_config_schema().validate(config)
    except SchemaError as e:
        logger.error(f"Configuration validation failed: {str(e)}")
        raise

    merged = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in config.items():
        merged[section].update(values)
    logger.debug(f"Validated configuration: {merged}")
    return merged


def load_config(config_path: str = "config.yaml") -> Dict:
    """
    Load and validate a configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file. Defaults to 'config.yaml'.

    Returns:
        Validated configuration dictionary with defaults filled in.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigValidationError: If the YAML is invalid or does not match the schema.
    """
    if not os.path.exists(config_path):
        logger.error(f"Configuration file not found: {config_path}")
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    try:
        with open(config_path, "r") as file:
            config = yaml.safe_load(file)
        if config is not None and not isinstance(config, dict):
            raise ConfigValidationError("Configuration file must contain a mapping.")
        return validate_config(config)
    except (yaml.YAMLError, SchemaError) as e:
        # Wrap with a short message (no stack trace) for the caller.
        raise ConfigValidationError(_compact_schema_error(e))


def get_sarima_order(config: Dict) -> SeasonalOrder:
    """Build the SARIMA order from a validated configuration."""
    section = config.get("sarima", DEFAULT_CONFIG["sarima"])
    return SeasonalOrder(**{key: section[key] for key in ("p", "d", "q", "P", "D", "Q", "s")})


def get_estimation_settings(config: Dict) -> EstimationSettings:
    """Build the estimator settings from a validated configuration."""
    section = config.get("estimation", DEFAULT_CONFIG["estimation"])
    return EstimationSettings(
        coefficient_bound=float(section["coefficient_bound"]),
        max_evaluations=int(section["max_evaluations"]),
        initial_value=float(section["initial_value"]),
        include_intercept=bool(section["include_intercept"]),
    )


def clamp_forecast_steps(steps: int, config: Optional[Dict] = None) -> int:
    """Clamp a requested horizon into the configured [min_steps, max_steps] range."""
    section = (config or DEFAULT_CONFIG).get("forecast", DEFAULT_CONFIG["forecast"])
    return max(section["min_steps"], min(int(steps), section["max_steps"]))
