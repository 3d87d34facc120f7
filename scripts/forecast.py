"""
Command line demo of the regression and SARIMA models on case-count data.

Fits a trend (or covariate) regression and a SARIMA model on the bundled sample series or
on a delimited case file, prints the regression summary and the forecast, and optionally
scores the SARIMA forecast on a hold-out tail of the series.
"""

import argparse
import logging
import sys
from typing import Dict, Optional, Sequence

import numpy as np

from models.factory import ModelFactory
from models.predictor import CasePredictor
from models.sarima import SeasonalOrder
from utils.config_utils import (
    ConfigValidationError,
    clamp_forecast_steps,
    get_estimation_settings,
    get_sarima_order,
    load_config,
    validate_config,
)
from utils.data_utils import sample_cases
from utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def format_values(values: Sequence[float], max_items: Optional[int] = None) -> str:
    """Format numbers with two decimals, truncating after max_items."""
    shown = list(values) if max_items is None else list(values)[:max_items]
    text = ", ".join(f"{v:.2f}" for v in shown)
    if max_items is not None and len(values) > max_items:
        text += "..."
    return f"[{text}]"


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = argparse.ArgumentParser(description="Fit regression and SARIMA models to case counts")
    parser.add_argument('--config-path', default='config.yaml', help="Path to the configuration file")
    parser.add_argument('--data', default=None, help="Delimited case file; the sample series is used if omitted")
    parser.add_argument('--steps', type=int, default=None, help="Forecast horizon (clamped to the configured range)")
    parser.add_argument('--order', type=int, nargs=7, metavar=('p', 'd', 'q', 'P', 'D', 'Q', 's'), default=None,
                        help="SARIMA order; overrides the configuration")
    parser.add_argument('--holdout', type=int, default=0, help="Score the forecast on the last N points")
    return parser.parse_args(argv)


def load_settings(config_path: str) -> Dict:
    """Load the configuration, falling back to defaults when the file does not exist."""
    try:
        return load_config(config_path)
    except FileNotFoundError:
        logger.info(f"No configuration at {config_path}; using defaults.")
        return validate_config({})


def evaluate_holdout(cases: np.ndarray, config: Dict, holdout: int) -> float:
    """
    Fit the configured SARIMA on all but the last ``holdout`` points and return the MSE
    of its forecast on them.

    Raises:
        ValueError: If holdout leaves no training data.
    """
    if holdout < 1 or holdout >= len(cases):
        raise ValueError(f"holdout must be in 1..{len(cases) - 1}.")
    model = ModelFactory.from_config("sarima", config, forecast_steps=holdout)
    model.fit(cases[:-holdout])
    predictions = model.predict()
    return model.evaluate(cases[-holdout:], predictions.to_numpy())


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)
    try:
        config = load_settings(args.config_path)
    except ConfigValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    setup_logging(config["logging"]["log_dir"], config["logging"]["level"])

    predictor = CasePredictor.from_file(args.data) if args.data else CasePredictor(sample_cases())
    if args.order:
        config["sarima"] = SeasonalOrder(*args.order).as_dict()
    order = get_sarima_order(config)
    steps = clamp_forecast_steps(args.steps if args.steps is not None else config["forecast"]["steps"], config)

    regression = predictor.fit_regression()
    print("=== Linear regression ===")
    print(f"Intercept b0 = {regression.intercept:.4f}")
    for i in range(regression.n_features):
        print(f"Slope b{i + 1} = {regression.coefficient(i):.4f}")
    print(f"R^2 = {regression.r_squared:.4f}, Adjusted R^2 = {regression.adjusted_r_squared:.4f}")
    print(f"Fitted (first 5): {format_values(predictor.fitted_values(), 5)}")
    print()

    fitted = predictor.fit_sarima(order, get_estimation_settings(config))
    print(f"=== {order} ({fitted.fit_quality.value}) ===")
    print(f"Forecast next {steps} periods: {format_values(predictor.forecast_sarima(steps))}")

    if args.holdout:
        mse = evaluate_holdout(predictor.cases, config, args.holdout)
        print(f"Hold-out MSE over last {args.holdout} points: {mse:.4f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
