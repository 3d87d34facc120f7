"""HTTP interface for the regression and SARIMA analysis.

Endpoints:
    POST /api/analyze   regression summary, fitted values and SARIMA forecast
    GET  /api/sample    the bundled sample case series
    GET  /api/health    liveness probe

Run with ``python -m api.app --config-path config.yaml``. The ``PORT`` environment
variable overrides the configured port.
"""

import argparse
import logging
import os
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from api.analyze import analyze_body
from utils.config_utils import ConfigValidationError, load_config, validate_config
from utils.data_utils import sample_cases
from utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def resolve_port(config: Dict) -> int:
    """Port from the PORT environment variable, else from the configuration."""
    env = os.getenv("PORT", "").strip()
    if env:
        try:
            return int(env)
        except ValueError:
            logger.warning(f"Ignoring non-numeric PORT={env!r}")
    return config["server"]["port"]


def create_app(config: Optional[Dict] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Validated configuration. Defaults are used when None.

    Returns:
        The application.
    """
    config = config or validate_config({})
    port = resolve_port(config)
    app = FastAPI(title="Dengue Forecaster")

    @app.post("/api/analyze")
    async def analyze(request: Request) -> JSONResponse:
        """Fit regression and SARIMA on the posted cases; errors are reported in-band."""
        body = await request.body()
        # Fitting is CPU bound; keep it off the event loop.
        result = await run_in_threadpool(analyze_body, body, config)
        return JSONResponse(result, status_code=200)

    @app.get("/api/sample")
    def sample() -> List[float]:
        return [float(v) for v in sample_cases()]

    @app.get("/api/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "port": port}

    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the dengue forecasting API")
    parser.add_argument("--config-path", default="config.yaml", help="Path to the configuration file")
    args = parser.parse_args()

    try:
        config = load_config(args.config_path)
    except FileNotFoundError:
        config = validate_config({})
    except ConfigValidationError as e:
        parser.error(f"Invalid configuration: {e}")
    setup_logging(config["logging"]["log_dir"], config["logging"]["level"])

    port = resolve_port(config)
    logger.info(f"Dengue forecasting API: http://localhost:{port}")
    uvicorn.run(create_app(config), host=config["server"]["host"], port=port)


if __name__ == "__main__":
    main()
