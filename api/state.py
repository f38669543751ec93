"""
Shared pipeline state for the FuelSense API.

One provider client and one metrics collector are built when the
application starts and closed when it stops. Routers receive them through
FastAPI dependencies, so tests can swap in a fake provider with
app.dependency_overrides.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import Request

from fuelsense.config import Settings, get_settings
from fuelsense.data.open_meteo_client import OpenMeteoMarineClient
from fuelsense.metrics import FetchMetrics

logger = logging.getLogger(__name__)


@dataclass
class PipelineState:
    """Long-lived collaborators shared by all requests."""
    settings: Settings
    client: Any
    metrics: FetchMetrics = field(default_factory=FetchMetrics)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    clock: Optional[Callable[[], datetime]] = None

    def close(self):
        close = getattr(self.client, "close", None)
        if close is not None:
            close()
        logger.info("Forecast provider client closed")


def build_pipeline_state(settings: Optional[Settings] = None) -> PipelineState:
    """Create the provider client and metrics collector for an application."""
    settings = settings or get_settings()
    client = OpenMeteoMarineClient(settings=settings)
    logger.info(f"Forecast provider: {settings.forecast_api_url} ({settings.forecast_days}-day horizon)")
    return PipelineState(settings=settings, client=client)


def get_pipeline_state(request: Request) -> PipelineState:
    """FastAPI dependency: the state built in the application lifespan."""
    return request.app.state.pipeline
