"""
FuelSense API Pydantic schemas.

Re-exports all schema classes:
    from api.schemas import Position, ConsumptionResponse, ...
"""

# Common
from .common import ErrorResponse, Position  # noqa: F401

# Weather pipeline
from .weather import (  # noqa: F401
    TimelinePositionModel,
    TimelineResponse,
    ForecastPointModel,
    MarineForecastResponse,
    WeatherAlertModel,
    VoyageWeatherSummaryModel,
    FuelBreakdownModel,
    ConsumptionResponse,
    BunkeringWeatherModel,
    SafeWindowModel,
    PortSafetyModel,
    PortWeatherResponse,
    VoyageWeatherResponse,
)
