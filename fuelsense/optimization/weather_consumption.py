"""
Weather-adjusted fuel consumption.

Each forecast point gets a dimensionless multiplier on still-water
consumption, built from two terms:

- wave term: sea-state severity factor, 1.0 in calm water rising to 1.8 in
  high seas. It never drops below 1.0, whatever the direction of the sea.
- wind term: headwind (θ <= 45°) adds up to 15%, beam wind up to 5%
  (linear in speed, saturating at 40 kt); a following wind (θ >= 135°)
  pushes the vessel and gives 0.95.

θ is the relative angle between the direction the wind comes from and the
vessel heading (0° = dead ahead). The per-point product is capped at 2.0.

Voyage consumption = base × mean(multiplier).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np

from fuelsense.data.sea_state import SeaState, classify_sea_state, is_at_least
from fuelsense.inputs import ConsumptionPoint, WeatherConsumptionRequest, parse_input
from fuelsense.routes.geo import format_utc, relative_angle

logger = logging.getLogger(__name__)

# Added resistance factor per sea state
WAVE_FACTORS = {
    SeaState.CALM: 1.00,
    SeaState.SLIGHT: 1.05,
    SeaState.MODERATE: 1.12,
    SeaState.ROUGH: 1.25,
    SeaState.VERY_ROUGH: 1.50,
    SeaState.HIGH: 1.80,
}

MAX_MULTIPLIER = 2.0

# Wind sectors (relative angle, degrees)
HEADWIND_SECTOR_DEG = 45.0
FOLLOWING_SECTOR_DEG = 135.0

# Wind term coefficients
WIND_SATURATION_KT = 40.0
HEADWIND_COEFF = 0.15
BEAM_WIND_COEFF = 0.05
FOLLOWING_WIND_FACTOR = 0.95

# Alert thresholds
WARNING_WIND_KT = 27.0   # Beaufort 7
SEVERE_WIND_KT = 34.0    # Beaufort 8 (gale)
WARNING_SEA_STATE = SeaState.ROUGH
SEVERE_SEA_STATE = SeaState.HIGH


def wave_factor(sea_state: SeaState) -> float:
    return WAVE_FACTORS[sea_state]


def wind_factor(wind_speed_kt: float, relative_deg: float) -> float:
    if wind_speed_kt <= 0:
        return 1.0
    if relative_deg >= FOLLOWING_SECTOR_DEG:
        return FOLLOWING_WIND_FACTOR
    strength = min(wind_speed_kt, WIND_SATURATION_KT) / WIND_SATURATION_KT
    if relative_deg <= HEADWIND_SECTOR_DEG:
        return 1.0 + HEADWIND_COEFF * strength
    return 1.0 + BEAM_WIND_COEFF * strength


def point_multiplier(
    wave_height_m: float,
    wind_speed_kt: float,
    wind_direction_deg: float,
    vessel_heading_deg: float,
) -> float:
    """
    Consumption multiplier for one forecast point.

    Args:
        wave_height_m: Significant wave height
        wind_speed_kt: Wind speed in knots
        wind_direction_deg: Direction the wind comes from
        vessel_heading_deg: Vessel course

    Returns:
        Multiplier in [0.95, 2.0]
    """
    theta = relative_angle(wind_direction_deg, vessel_heading_deg)
    sea_state = classify_sea_state(wave_height_m)
    multiplier = wave_factor(sea_state) * wind_factor(wind_speed_kt, theta)
    return min(multiplier, MAX_MULTIPLIER)


@dataclass
class WeatherAlert:
    """Severe-condition alert at one forecast point."""
    datetime: datetime
    severity: str  # "warning" | "severe"
    description: str
    wave_height_m: float
    wind_speed_kt: float
    position: Optional[Dict[str, float]] = None

    def to_dict(self) -> dict:
        result = {
            "datetime": format_utc(self.datetime),
            "severity": self.severity,
            "description": self.description,
            "wave_height_m": self.wave_height_m,
            "wind_speed_kt": self.wind_speed_kt,
        }
        if self.position is not None:
            result["position"] = self.position
        return result


@dataclass
class VoyageWeatherSummary:
    avg_wave_height_m: float
    max_wave_height_m: float
    avg_multiplier: float
    worst_conditions_date: datetime

    def to_dict(self) -> dict:
        return {
            "avg_wave_height_m": round(self.avg_wave_height_m, 3),
            "max_wave_height_m": round(self.max_wave_height_m, 3),
            "avg_multiplier": round(self.avg_multiplier, 4),
            "worst_conditions_date": format_utc(self.worst_conditions_date),
        }


@dataclass
class FuelBreakdown:
    base: float
    adjusted: float

    def to_dict(self) -> dict:
        return {"base": round(self.base, 3), "adjusted": round(self.adjusted, 3)}


@dataclass
class ConsumptionResult:
    """Weather-adjusted consumption for a forecast series."""
    base_consumption_mt: float
    weather_adjusted_consumption_mt: float
    additional_fuel_needed_mt: float
    consumption_increase_percent: float
    voyage_weather_summary: VoyageWeatherSummary
    weather_alerts: List[WeatherAlert] = field(default_factory=list)
    breakdown_by_fuel_type: Optional[Dict[str, FuelBreakdown]] = None
    multipliers: List[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {
            "base_consumption_mt": round(self.base_consumption_mt, 3),
            "weather_adjusted_consumption_mt": round(self.weather_adjusted_consumption_mt, 3),
            "additional_fuel_needed_mt": round(self.additional_fuel_needed_mt, 3),
            "consumption_increase_percent": round(self.consumption_increase_percent, 2),
            "voyage_weather_summary": self.voyage_weather_summary.to_dict(),
            "weather_alerts": [alert.to_dict() for alert in self.weather_alerts],
        }
        if self.breakdown_by_fuel_type is not None:
            result["breakdown_by_fuel_type"] = {
                fuel_type: entry.to_dict()
                for fuel_type, entry in self.breakdown_by_fuel_type.items()
            }
        return result


def build_alert(point: ConsumptionPoint) -> Optional[WeatherAlert]:
    """Alert for a point whose sea state or wind crosses a threshold, else None."""
    sea_state = classify_sea_state(point.wave_height_m)
    wind = point.wind_speed_kt

    wave_severity = None
    if is_at_least(sea_state, SEVERE_SEA_STATE):
        wave_severity = "severe"
    elif is_at_least(sea_state, WARNING_SEA_STATE):
        wave_severity = "warning"

    wind_severity = None
    if wind > SEVERE_WIND_KT:
        wind_severity = "severe"
    elif wind > WARNING_WIND_KT:
        wind_severity = "warning"

    if wave_severity is None and wind_severity is None:
        return None

    wave_text = (
        f"{'Severe' if wave_severity == 'severe' else 'Rough'} wave conditions: "
        f"{point.wave_height_m:.2f}m waves ({sea_state.value})"
    )
    wind_text = (
        f"{'Severe' if wind_severity == 'severe' else 'Strong'} wind conditions: {wind:.1f}kt winds"
    )
    if wave_severity and wind_severity:
        description = f"{wave_text} and {wind:.1f}kt winds"
    elif wave_severity:
        description = wave_text
    else:
        description = wind_text

    severity = "severe" if "severe" in (wave_severity, wind_severity) else "warning"
    position = None
    if point.position is not None:
        position = {"lat": point.position.lat, "lon": point.position.lon}

    return WeatherAlert(
        datetime=point.datetime,
        severity=severity,
        description=description,
        wave_height_m=point.wave_height_m,
        wind_speed_kt=wind,
        position=position,
    )


class WeatherConsumptionCalculator:
    """
    Convert a forecast series into weather-adjusted consumption.

    Pure computation; performs no I/O.
    """

    def calculate(self, request: Any) -> ConsumptionResult:
        """
        Args:
            request: WeatherConsumptionRequest or mapping with forecast_points,
                base_consumption_mt, vessel_heading_deg and optional
                fuel_type_breakdown

        Raises:
            InvalidInput: If the request fails validation
        """
        req = parse_input(WeatherConsumptionRequest, request)
        points = req.forecast_points
        base = req.base_consumption_mt

        multipliers = np.array([
            point_multiplier(p.wave_height_m, p.wind_speed_kt, p.wind_direction_deg, req.vessel_heading_deg)
            for p in points
        ])
        waves = np.array([p.wave_height_m for p in points])

        avg_multiplier = float(np.mean(multipliers))
        adjusted = base * avg_multiplier
        additional = adjusted - base
        worst_idx = int(np.argmax(multipliers))

        summary = VoyageWeatherSummary(
            avg_wave_height_m=float(np.mean(waves)),
            max_wave_height_m=float(np.max(waves)),
            avg_multiplier=avg_multiplier,
            worst_conditions_date=points[worst_idx].datetime,
        )

        alerts = [alert for alert in (build_alert(p) for p in points) if alert is not None]

        breakdown = None
        if req.fuel_type_breakdown is not None:
            breakdown = {
                fuel_type: FuelBreakdown(base=quantity, adjusted=quantity * avg_multiplier)
                for fuel_type, quantity in req.fuel_type_breakdown.items()
            }

        logger.info(
            f"Weather consumption: {len(points)} points, avg multiplier {avg_multiplier:.3f}, "
            f"{base:.1f} -> {adjusted:.1f} MT, {len(alerts)} alerts"
        )

        return ConsumptionResult(
            base_consumption_mt=base,
            weather_adjusted_consumption_mt=adjusted,
            additional_fuel_needed_mt=additional,
            consumption_increase_percent=100.0 * additional / base,
            voyage_weather_summary=summary,
            weather_alerts=alerts,
            breakdown_by_fuel_type=breakdown,
            multipliers=[float(m) for m in multipliers],
        )


def calculate_weather_consumption(request: Any) -> ConsumptionResult:
    """Entry point: forecast series + baseline + heading -> adjusted consumption."""
    return WeatherConsumptionCalculator().calculate(request)
