"""
Voyage weather pipeline.

Runs the three route stages in order:
    timeline -> marine forecast -> weather-adjusted consumption

Port safety is a separate entry point (see port_safety) since it only needs
an arrival estimate.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

from fuelsense.config import Settings, get_settings
from fuelsense.data.climatology import ClimatologyEstimator
from fuelsense.data.marine_forecast import ForecastPoint, MarineForecastFetcher
from fuelsense.data.open_meteo_client import OpenMeteoMarineClient
from fuelsense.inputs import VoyageWeatherRequest, parse_input
from fuelsense.metrics import FetchMetrics
from fuelsense.optimization.weather_consumption import ConsumptionResult, WeatherConsumptionCalculator
from fuelsense.routes.geo import calculate_bearing
from fuelsense.routes.timeline import TimelineGenerator, TimelinePosition

logger = logging.getLogger(__name__)


@dataclass
class VoyageWeatherResult:
    """Output of every stage of one voyage run."""
    vessel_heading_deg: float
    timeline: List[TimelinePosition]
    forecast: List[ForecastPoint]
    consumption: ConsumptionResult

    def to_dict(self) -> dict:
        return {
            "vessel_heading_deg": round(self.vessel_heading_deg, 1),
            "timeline": [p.to_dict() for p in self.timeline],
            "forecast": [p.to_dict() for p in self.forecast],
            "consumption": self.consumption.to_dict(),
        }


class VoyageWeatherPlanner:
    """
    Weather-adjusted consumption for a route in one call.

    Usage:
        planner = VoyageWeatherPlanner(client=OpenMeteoMarineClient())
        result = planner.plan({
            "waypoints": [{"lat": 1.29, "lon": 103.85}, {"lat": 22.54, "lon": 59.08}],
            "vessel_speed_knots": 14,
            "departure_datetime": "2024-12-25T08:00:00Z",
            "base_consumption_mt": 750,
        })
    """

    def __init__(
        self,
        client: OpenMeteoMarineClient,
        settings: Optional[Settings] = None,
        estimator: Optional[ClimatologyEstimator] = None,
        metrics: Optional[FetchMetrics] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings()
        self.timeline = TimelineGenerator(self.settings)
        self.fetcher = MarineForecastFetcher(
            client,
            settings=self.settings,
            estimator=estimator,
            metrics=metrics,
            clock=clock,
        )
        self.calculator = WeatherConsumptionCalculator()

    def plan(self, request: Any, cancel_event: Optional[threading.Event] = None) -> VoyageWeatherResult:
        """
        Args:
            request: VoyageWeatherRequest or equivalent mapping
            cancel_event: Cancels in-flight forecast calls once set

        Raises:
            InvalidInput: If the request fails validation
            PipelineCancelled: If cancel_event is set during the forecast stage
        """
        req = parse_input(VoyageWeatherRequest, request)

        heading = req.vessel_heading_deg
        if heading is None:
            first, last = req.waypoints[0], req.waypoints[-1]
            heading = calculate_bearing(first.lat, first.lon, last.lat, last.lon)

        positions = self.timeline.generate({
            "waypoints": [wp.model_dump() for wp in req.waypoints],
            "vessel_speed_knots": req.vessel_speed_knots,
            "departure_datetime": req.departure_datetime,
            "sampling_interval_hours": req.sampling_interval_hours,
        })

        forecast = self.fetcher.fetch(
            {"positions": [{"lat": p.lat, "lon": p.lon, "datetime": p.datetime} for p in positions]},
            cancel_event=cancel_event,
        )

        consumption = self.calculator.calculate({
            "forecast_points": [point.to_dict() for point in forecast],
            "base_consumption_mt": req.base_consumption_mt,
            "vessel_heading_deg": heading,
            "fuel_type_breakdown": req.fuel_type_breakdown,
        })

        logger.info(
            f"Voyage weather: {len(positions)} positions, heading {heading:.1f}°, "
            f"{consumption.base_consumption_mt:.1f} -> "
            f"{consumption.weather_adjusted_consumption_mt:.1f} MT"
        )

        return VoyageWeatherResult(
            vessel_heading_deg=heading,
            timeline=positions,
            forecast=forecast,
            consumption=consumption,
        )


def plan_voyage_weather(
    request: Any,
    client: OpenMeteoMarineClient,
    settings: Optional[Settings] = None,
    cancel_event: Optional[threading.Event] = None,
) -> VoyageWeatherResult:
    """Entry point: route + speed + baseline -> timeline, forecast and consumption."""
    return VoyageWeatherPlanner(client, settings=settings).plan(request, cancel_event=cancel_event)
