"""
FastAPI backend for FuelSense.

Exposes the weather-routing pipeline over REST:
- Position timeline along a route
- Tiered-confidence marine forecasts
- Weather-adjusted fuel consumption
- Port bunkering weather safety

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.middleware import get_request_id, setup_middleware, structured_logger
from api.routers.weather import router as weather_router
from api.state import PipelineState, build_pipeline_state, get_pipeline_state
from fuelsense import __version__
from fuelsense.config import Settings, get_settings
from fuelsense.errors import FuelSenseError, InvalidInput, PipelineCancelled

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    """Root logging from settings.log_level."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None, state: Optional[PipelineState] = None) -> FastAPI:
    """
    Application factory for the FuelSense API.

    Args:
        settings: Settings to use (cached environment settings if None)
        state: Prebuilt pipeline state (built in the lifespan if None)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        pipeline = state or build_pipeline_state(settings)
        application.state.pipeline = pipeline
        logger.info(f"FuelSense API {__version__} started ({settings.environment})")
        try:
            yield
        finally:
            pipeline.close()

    application = FastAPI(
        title="FuelSense API",
        description="Weather-routing pipeline: timeline, marine forecast, consumption and port safety.",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    setup_middleware(application, debug=settings.is_development)

    # CORS - configured origins only
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @application.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput):
        return JSONResponse(status_code=422, content=exc.to_dict())

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        issues = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            issues.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
        structured_logger.warning(
            "Validation error",
            method=request.method,
            path=request.url.path,
            issues=issues,
        )
        error = InvalidInput(f"Input validation failed: {', '.join(issues)}")
        return JSONResponse(status_code=422, content=error.to_dict())

    @application.exception_handler(PipelineCancelled)
    async def cancelled_handler(request: Request, exc: PipelineCancelled):
        return JSONResponse(status_code=503, content=exc.to_dict())

    @application.exception_handler(FuelSenseError)
    async def pipeline_error_handler(request: Request, exc: FuelSenseError):
        structured_logger.error(
            "Pipeline error",
            path=request.url.path,
            error=exc.message,
            error_type=type(exc).__name__,
        )
        content = exc.to_dict()
        content["request_id"] = get_request_id()
        return JSONResponse(status_code=502, content=content)

    @application.get("/", tags=["System"])
    async def root():
        """API root endpoint."""
        return {
            "name": "FuelSense API",
            "version": __version__,
            "status": "operational",
            "docs": "/api/docs",
            "endpoints": {
                "health": "/api/health",
                "timeline": "/api/weather/timeline",
                "marine": "/api/weather/marine",
                "consumption": "/api/weather/consumption",
                "ports": "/api/weather/ports",
                "voyage": "/api/weather/voyage",
            },
        }

    @application.get("/api/health", tags=["System"])
    async def health_check(request: Request):
        """Liveness plus forecast fetch metrics."""
        pipeline = get_pipeline_state(request)
        return {
            "status": "healthy",
            "version": __version__,
            "started_at": pipeline.started_at.isoformat(),
            "forecast_provider": pipeline.settings.forecast_api_url,
            "metrics": pipeline.metrics.get_summary(),
            "request_id": get_request_id(),
        }

    application.include_router(weather_router)
    return application


def run():
    """Run the API with uvicorn using configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


app = create_app()


if __name__ == "__main__":
    run()
