"""
FastAPI Application

Main entry point for the player metrics web API.

Run with: uvicorn player_metrics.api.main:create_app --factory
"""

from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from player_metrics.api.models.responses import ErrorResponse
from player_metrics.api.routes import baselines, coaches, metrics, players, snapshots
from player_metrics.config import Settings, get_settings
from player_metrics.engine import CalibrationEngine
from player_metrics.errors import (
    InvalidMetricKey,
    InvalidSnapshot,
    MetricsEngineError,
    RangeViolation,
    RecomputationFailed,
)
from player_metrics.logging_config import setup_logging

SERVICE_NAME = "player-metrics-api"
API_VERSION = "1.0.0"

ERROR_STATUS = {
    InvalidMetricKey: status.HTTP_404_NOT_FOUND,
    RangeViolation: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidSnapshot: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RecomputationFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
}

# Documented error bodies (OpenAPI)
ERROR_RESPONSES = {
    code: {"model": ErrorResponse}
    for code in sorted(set(ERROR_STATUS.values()))
}


def create_app(engine: Optional[CalibrationEngine] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        engine: Engine to serve; built from settings on first request when omitted
        settings: Defaults to get_settings()

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Player Metrics Calibration API",
        description="Coach calibration, readiness and multi-coach consensus for player assessments",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.engine = engine

    # CORS configuration - allow frontend to access API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    prefix = settings.api_prefix
    app.include_router(metrics.router, prefix=prefix, tags=["Metrics"])
    app.include_router(baselines.router, prefix=prefix, tags=["Baselines & Hints"], responses=ERROR_RESPONSES)
    app.include_router(coaches.router, prefix=prefix, tags=["Coach Profiles"], responses=ERROR_RESPONSES)
    app.include_router(snapshots.router, prefix=prefix, tags=["Snapshots & Readiness"], responses=ERROR_RESPONSES)
    app.include_router(players.router, prefix=prefix, tags=["Players"], responses=ERROR_RESPONSES)

    @app.get("/")
    async def root() -> Dict[str, str]:
        """Root endpoint - API information."""
        return {
            "name": "Player Metrics Calibration API",
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": SERVICE_NAME}

    @app.exception_handler(MetricsEngineError)
    async def engine_error_handler(request: Request, exc: MetricsEngineError):
        """Map engine errors to HTTP status codes."""
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        for error_type, code in ERROR_STATUS.items():
            if isinstance(exc, error_type):
                status_code = code
                break
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "message": str(exc)},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent error format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "message": str(exc.detail)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal Server Error",
                "message": str(exc),
            },
        )

    return app


if __name__ == "__main__":
    import uvicorn

    # Built by uvicorn at startup, not on import
    uvicorn.run(
        "player_metrics.api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
