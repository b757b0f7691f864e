"""HTTP trigger module.

Exposes the sweeper pass as a single endpoint for a function host or an
external scheduler. Every call runs exactly one pass.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from errors import PassError, StoreUnavailable

logger = logging.getLogger(__name__)


def _error_body(error: Exception) -> Dict[str, Any]:
    return {"error": type(error).__name__, "message": str(error)}


def _error_status(error: PassError) -> int:
    # 503 when the store is unreachable, 502 when it answered with an error
    return 503 if isinstance(error, StoreUnavailable) else 502


def create_app(sweeper: Any) -> FastAPI:
    """Build the FastAPI application around a RecoverySweeper.

    Args:
        sweeper: RecoverySweeper instance that runs the passes

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="Stream Recovery Sweeper", version="1.0.0")

    def trigger_pass() -> JSONResponse:
        try:
            result = sweeper.run_pass()
        except PassError as e:
            logger.error(f"Pass failed: {e}")
            return JSONResponse(status_code=_error_status(e), content=_error_body(e))
        return JSONResponse(status_code=200, content=result.to_dict())

    # Request bodies are ignored; function hosts invoke with either verb
    app.add_api_route("/monitor", trigger_pass, methods=["GET", "POST"])

    @app.get("/healthz")
    def healthz() -> JSONResponse:
        try:
            sweeper.gateway.ping()
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return JSONResponse(status_code=503, content=_error_body(e))
        return JSONResponse(status_code=200, content={"status": "ok"})

    return app
