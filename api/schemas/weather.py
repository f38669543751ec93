"""Weather pipeline API schemas."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from api.schemas.common import Position


class TimelinePositionModel(BaseModel):
    lat: float
    lon: float
    datetime: str  # ISO 8601 UTC
    distance_from_start_nm: float
    segment_index: int


class TimelineResponse(BaseModel):
    positions: List[TimelinePositionModel]
    count: int


class ForecastPointModel(BaseModel):
    """Sea conditions at one position with its confidence tier."""
    position: Position
    datetime: str
    wave_height_m: float
    wind_speed_kt: float
    wind_direction_deg: float
    sea_state: str
    forecast_confidence: str  # high | medium | low


class MarineForecastResponse(BaseModel):
    points: List[ForecastPointModel]
    count: int
    confidence: Dict[str, int] = Field(default_factory=dict)


class WeatherAlertModel(BaseModel):
    datetime: str
    severity: str  # warning | severe
    description: str
    wave_height_m: float
    wind_speed_kt: float
    position: Optional[Position] = None


class VoyageWeatherSummaryModel(BaseModel):
    avg_wave_height_m: float
    max_wave_height_m: float
    avg_multiplier: float
    worst_conditions_date: str


class FuelBreakdownModel(BaseModel):
    base: float
    adjusted: float


class ConsumptionResponse(BaseModel):
    base_consumption_mt: float
    weather_adjusted_consumption_mt: float
    additional_fuel_needed_mt: float
    consumption_increase_percent: float
    voyage_weather_summary: VoyageWeatherSummaryModel
    weather_alerts: List[WeatherAlertModel]
    breakdown_by_fuel_type: Optional[Dict[str, FuelBreakdownModel]] = None


class BunkeringWeatherModel(BaseModel):
    arrival_time: str
    bunkering_window_hours: float
    avg_wave_height_m: float
    max_wave_height_m: float
    avg_wind_speed_kt: float
    max_wind_speed_kt: float
    conditions: str  # Excellent | Good | Marginal | Unsafe


class SafeWindowModel(BaseModel):
    starts_at: str
    duration_hours: float


class PortSafetyModel(BaseModel):
    port_code: str
    port_name: str
    bunkering_feasible: bool
    weather_risk: str  # Low | Medium | High
    weather_during_bunkering: BunkeringWeatherModel
    recommendation: str
    next_good_window: Optional[SafeWindowModel] = None


class PortWeatherResponse(BaseModel):
    ports: List[PortSafetyModel]
    feasible_count: int


class VoyageWeatherResponse(BaseModel):
    vessel_heading_deg: float
    timeline: List[TimelinePositionModel]
    forecast: List[ForecastPointModel]
    consumption: ConsumptionResponse
