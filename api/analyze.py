"""Request handling for the analysis endpoint.

The envelope is reported in-band: a successful analysis returns ``regression`` and
``forecast``, any failure returns only ``error``. Callers always answer with HTTP 200.
"""

import json
import logging
from numbers import Number
from typing import Any, Dict, List, Optional

from models.predictor import CasePredictor
from models.sarima import SeasonalOrder
from utils.config_utils import DEFAULT_CONFIG, clamp_forecast_steps, get_estimation_settings

logger = logging.getLogger(__name__)

ORDER_DEFAULTS = DEFAULT_CONFIG["sarima"]


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _error(message: str) -> Dict[str, Any]:
    return {"error": message}


def _parse_order(sarima: Any, defaults: Dict[str, int]) -> SeasonalOrder:
    params = dict(defaults)
    if isinstance(sarima, dict):
        for key in params:
            if key not in sarima:
                continue
            value = sarima[key]
            if not _is_number(value):
                raise ValueError(f"SARIMA field '{key}' must be an integer")
            params[key] = int(value)
    return SeasonalOrder.from_params(params)


def analyze_payload(payload: Any, config: Optional[Dict] = None) -> Dict[str, Any]:
    """
    Run the regression and SARIMA analysis for a decoded request.

    Args:
        payload: Decoded JSON body. Expected keys: ``cases`` (required, non-empty list of
            numbers), ``sarima`` (optional object with integer p, d, q, P, D, Q, s) and
            ``forecastSteps`` (optional integer, clamped to the configured range).
        config: Validated configuration; defaults when None.

    Returns:
        The response envelope.
    """
    config = config or DEFAULT_CONFIG
    if not isinstance(payload, dict):
        return _error("Invalid JSON")
    cases = payload.get("cases")
    if not isinstance(cases, list):
        return _error("Missing or invalid 'cases' array")
    if not cases:
        return _error("Empty 'cases' array")
    if not all(_is_number(value) for value in cases):
        return _error("All case values must be numbers")

    try:
        order = _parse_order(payload.get("sarima"), config.get("sarima", ORDER_DEFAULTS))
        steps = config["forecast"]["steps"]
        requested = payload.get("forecastSteps")
        if _is_number(requested):
            steps = clamp_forecast_steps(int(requested), config)

        predictor = CasePredictor([float(value) for value in cases])
        regression = predictor.fit_regression()
        predictor.fit_sarima(order, get_estimation_settings(config))

        summary = regression.summary()
        summary["fitted"] = [float(v) for v in predictor.fitted_values()]
        forecast: List[float] = [float(v) for v in predictor.forecast_sarima(steps)]
        return {"regression": summary, "forecast": forecast}
    except Exception as e:
        logger.warning(f"Analysis failed: {type(e).__name__}: {str(e)}", exc_info=True)
        message = str(e)
        return _error(message if message else type(e).__name__)


def analyze_body(body: Optional[bytes], config: Optional[Dict] = None) -> Dict[str, Any]:
    """
    Decode a raw request body and analyze it.

    Args:
        body: Raw request body.
        config: Validated configuration; defaults when None.

    Returns:
        The response envelope.
    """
    if body is None or not body.strip():
        return _error("Missing request body")
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError):
        return _error("Invalid JSON")
    if payload is None:
        return _error("Invalid JSON")
    return analyze_payload(payload, config)
