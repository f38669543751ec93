"""
Request models for the pipeline entry points.

Every entry point validates its input here before any external call is
made. Validation failures surface as InvalidInput.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from fuelsense.errors import InvalidInput
from fuelsense.routes.geo import parse_utc

M = TypeVar("M", bound=BaseModel)


def _utc(value: Any) -> datetime:
    if isinstance(value, datetime):
        return parse_utc(value.isoformat())
    try:
        return parse_utc(value)
    except (TypeError, ValueError):
        raise ValueError(f"Datetime must be in ISO 8601 format, got {value!r}")


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lon: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class TimelineRequest(BaseModel):
    """Input for the position timeline generator."""
    waypoints: List[Coordinates] = Field(..., min_length=1)
    vessel_speed_knots: float = Field(..., ge=5, le=30, allow_inf_nan=False)
    departure_datetime: datetime
    sampling_interval_hours: Optional[float] = Field(None, gt=0, allow_inf_nan=False)

    parse_departure = field_validator("departure_datetime", mode="before")(_utc)


class ForecastPosition(Coordinates):
    datetime: datetime

    parse_datetime = field_validator("datetime", mode="before")(_utc)


class MarineForecastRequest(BaseModel):
    """Input for the marine forecast fetcher."""
    positions: List[ForecastPosition] = Field(..., min_length=1)


def _fuel_breakdown(value: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
    if value is None:
        return value
    for fuel_type, quantity in value.items():
        if not fuel_type:
            raise ValueError("Fuel type name must not be empty")
        if not quantity > 0:
            raise ValueError(f"{fuel_type} quantity must be positive")
    return value


class ConsumptionPoint(BaseModel):
    """One forecast sample fed into the consumption calculator."""
    datetime: datetime
    wave_height_m: float = Field(..., ge=0, allow_inf_nan=False)
    wind_speed_kt: float = Field(..., ge=0, allow_inf_nan=False)
    wind_direction_deg: float = Field(..., ge=0, le=360, allow_inf_nan=False)
    sea_state: Optional[str] = None
    position: Optional[Coordinates] = None

    parse_datetime = field_validator("datetime", mode="before")(_utc)


class WeatherConsumptionRequest(BaseModel):
    """Input for the weather-adjusted consumption calculator."""
    forecast_points: List[ConsumptionPoint] = Field(..., min_length=1)
    base_consumption_mt: float = Field(..., gt=0, allow_inf_nan=False)
    vessel_heading_deg: float = Field(..., ge=0, lt=360, allow_inf_nan=False)
    fuel_type_breakdown: Optional[Dict[str, float]] = None

    check_breakdown = field_validator("fuel_type_breakdown")(_fuel_breakdown)


class BunkerPort(Coordinates):
    port_code: str = Field(..., min_length=1)
    port_name: str = Field(..., min_length=1)
    estimated_arrival: datetime
    bunkering_duration_hours: Optional[float] = Field(None, gt=0, le=48, allow_inf_nan=False)

    parse_arrival = field_validator("estimated_arrival", mode="before")(_utc)


class PortWeatherRequest(BaseModel):
    """Input for the port weather safety evaluator."""
    bunker_ports: List[BunkerPort] = Field(..., min_length=1)


class VoyageWeatherRequest(BaseModel):
    """Input for the combined timeline -> forecast -> consumption run."""
    waypoints: List[Coordinates] = Field(..., min_length=1)
    vessel_speed_knots: float = Field(..., ge=5, le=30, allow_inf_nan=False)
    departure_datetime: datetime
    base_consumption_mt: float = Field(..., gt=0, allow_inf_nan=False)
    sampling_interval_hours: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    vessel_heading_deg: Optional[float] = Field(None, ge=0, lt=360, allow_inf_nan=False)
    fuel_type_breakdown: Optional[Dict[str, float]] = None

    parse_departure = field_validator("departure_datetime", mode="before")(_utc)
    check_breakdown = field_validator("fuel_type_breakdown")(_fuel_breakdown)


def parse_input(model: Type[M], data: Any) -> M:
    """
    Validate raw input against a request model.

    Accepts a model instance, another pydantic model with the same fields,
    or a plain mapping.

    Raises:
        InvalidInput: With every validation issue joined into the message
    """
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model.model_validate(data)
    except ValidationError as e:
        issues = []
        for err in e.errors():
            location = ".".join(str(part) for part in err.get("loc", ()))
            message = err.get("msg", "invalid value")
            issues.append(f"{location}: {message}" if location else message)
        raise InvalidInput(f"Input validation failed: {', '.join(issues)}")
