"""Weather-adjusted consumption, port bunkering safety and the voyage pipeline."""

from .weather_consumption import (
    ConsumptionResult,
    WeatherConsumptionCalculator,
    calculate_weather_consumption,
    point_multiplier,
)
from .port_safety import PortSafetyResult, PortWeatherSafetyEvaluator, check_port_weather
from .voyage_weather import VoyageWeatherPlanner, VoyageWeatherResult, plan_voyage_weather

__all__ = [
    "ConsumptionResult",
    "WeatherConsumptionCalculator",
    "calculate_weather_consumption",
    "point_multiplier",
    "PortSafetyResult",
    "PortWeatherSafetyEvaluator",
    "check_port_weather",
    "VoyageWeatherPlanner",
    "VoyageWeatherResult",
    "plan_voyage_weather",
]
