"""
Weather pipeline router for the FuelSense API.

Endpoints:
    POST /api/weather/timeline     -> vessel positions along a route
    POST /api/weather/marine       -> tiered-confidence forecast per position
    POST /api/weather/consumption  -> weather-adjusted fuel consumption
    POST /api/weather/ports        -> bunkering safety per port
    POST /api/weather/voyage       -> timeline + forecast + consumption

The pipeline is blocking (thread pool and HTTP calls), so handlers are
plain functions and run in FastAPI's worker threads.
"""

import logging
from collections import Counter

from fastapi import APIRouter, Depends

from api.schemas.common import ErrorResponse
from api.schemas.weather import (
    ConsumptionResponse,
    MarineForecastResponse,
    PortWeatherResponse,
    TimelineResponse,
    VoyageWeatherResponse,
)
from api.state import PipelineState, get_pipeline_state
from fuelsense.data.marine_forecast import MarineForecastFetcher
from fuelsense.inputs import (
    MarineForecastRequest,
    PortWeatherRequest,
    TimelineRequest,
    VoyageWeatherRequest,
    WeatherConsumptionRequest,
)
from fuelsense.optimization.port_safety import PortWeatherSafetyEvaluator
from fuelsense.optimization.voyage_weather import VoyageWeatherPlanner
from fuelsense.optimization.weather_consumption import WeatherConsumptionCalculator
from fuelsense.routes.timeline import TimelineGenerator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/weather",
    tags=["Weather"],
    responses={
        422: {"model": ErrorResponse, "description": "Invalid input"},
        502: {"model": ErrorResponse, "description": "Forecast provider failure"},
        503: {"model": ErrorResponse, "description": "Run cancelled"},
    },
)


@router.post("/timeline", response_model=TimelineResponse)
def weather_timeline(
    request: TimelineRequest,
    state: PipelineState = Depends(get_pipeline_state),
):
    """Interpolate vessel positions along the route at the sampling interval."""
    positions = TimelineGenerator(state.settings).generate(request)
    return {"positions": [p.to_dict() for p in positions], "count": len(positions)}


@router.post("/marine", response_model=MarineForecastResponse)
def marine_weather(
    request: MarineForecastRequest,
    state: PipelineState = Depends(get_pipeline_state),
):
    """Wave and wind forecast for each position, tagged high/medium/low confidence."""
    fetcher = MarineForecastFetcher(
        state.client,
        settings=state.settings,
        metrics=state.metrics,
        clock=state.clock,
    )
    points = fetcher.fetch(request)
    return {
        "points": [p.to_dict() for p in points],
        "count": len(points),
        "confidence": dict(Counter(p.forecast_confidence.value for p in points)),
    }


@router.post("/consumption", response_model=ConsumptionResponse, response_model_exclude_none=True)
def weather_consumption(request: WeatherConsumptionRequest):
    """Adjust baseline consumption for the forecast series and vessel heading."""
    return WeatherConsumptionCalculator().calculate(request).to_dict()


@router.post("/ports", response_model=PortWeatherResponse, response_model_exclude_none=True)
def port_weather(
    request: PortWeatherRequest,
    state: PipelineState = Depends(get_pipeline_state),
):
    """Bunkering feasibility, risk and next safe window for each port."""
    evaluator = PortWeatherSafetyEvaluator(state.client, settings=state.settings, metrics=state.metrics)
    results = evaluator.evaluate(request)
    return {
        "ports": [r.to_dict() for r in results],
        "feasible_count": sum(1 for r in results if r.bunkering_feasible),
    }


@router.post("/voyage", response_model=VoyageWeatherResponse, response_model_exclude_none=True)
def voyage_weather(
    request: VoyageWeatherRequest,
    state: PipelineState = Depends(get_pipeline_state),
):
    """Run timeline, forecast and consumption for a route in one call."""
    planner = VoyageWeatherPlanner(
        state.client,
        settings=state.settings,
        metrics=state.metrics,
        clock=state.clock,
    )
    return planner.plan(request).to_dict()
