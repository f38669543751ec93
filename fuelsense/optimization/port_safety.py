"""
Bunkering weather safety at ports.

For each port, fetches the hourly forecast at the port position and
evaluates the bunkering window [arrival, arrival + duration]:

- Feasible when max wave <= 1.5 m and max wind <= 25 kt over the window
- Conditions: Excellent (avg wave < 0.8 m, avg wind < 15 kt),
  Good (< 1.2 m, < 20 kt), Marginal (otherwise safe), Unsafe
- Risk: High (unsafe), Medium (max wave >= 1.2 m or max wind >= 20 kt),
  Low (otherwise)

When the window is unsafe, the next run of consecutive safe hours within
48 h of arrival is reported. One port failing to fetch never affects the
other ports.
"""

import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, List, Optional

import numpy as np

from fuelsense.config import Settings, get_settings
from fuelsense.data.open_meteo_client import HourlySample, HourlySeries, OpenMeteoMarineClient
from fuelsense.errors import PipelineCancelled, StructuralResponse, UpstreamUnavailable
from fuelsense.inputs import BunkerPort, PortWeatherRequest, parse_input
from fuelsense.metrics import FetchMetrics
from fuelsense.resilience import await_future
from fuelsense.routes.geo import format_utc

logger = logging.getLogger(__name__)

# Safe bunkering limits (inclusive)
SAFE_MAX_WAVE_M = 1.5
SAFE_MAX_WIND_KT = 25.0

# Condition bands on window averages (exclusive upper bounds)
EXCELLENT_WAVE_M, EXCELLENT_WIND_KT = 0.8, 15.0
GOOD_WAVE_M, GOOD_WIND_KT = 1.2, 20.0

# Medium-risk bounds on window maxima (inclusive lower bounds)
MEDIUM_RISK_WAVE_M, MEDIUM_RISK_WIND_KT = 1.2, 20.0


class Conditions(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    MARGINAL = "Marginal"
    UNSAFE = "Unsafe"


class WeatherRisk(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def is_safe(wave_height_m: float, wind_speed_kt: float) -> bool:
    return wave_height_m <= SAFE_MAX_WAVE_M and wind_speed_kt <= SAFE_MAX_WIND_KT


def classify_conditions(avg_wave: float, avg_wind: float, max_wave: float, max_wind: float) -> Conditions:
    if not is_safe(max_wave, max_wind):
        return Conditions.UNSAFE
    if avg_wave < EXCELLENT_WAVE_M and avg_wind < EXCELLENT_WIND_KT:
        return Conditions.EXCELLENT
    if avg_wave < GOOD_WAVE_M and avg_wind < GOOD_WIND_KT:
        return Conditions.GOOD
    return Conditions.MARGINAL


def classify_risk(max_wave: float, max_wind: float) -> WeatherRisk:
    if not is_safe(max_wave, max_wind):
        return WeatherRisk.HIGH
    if max_wave >= MEDIUM_RISK_WAVE_M or max_wind >= MEDIUM_RISK_WIND_KT:
        return WeatherRisk.MEDIUM
    return WeatherRisk.LOW


@dataclass
class BunkeringWeather:
    """Weather statistics over a bunkering window."""
    arrival_time: datetime
    bunkering_window_hours: float
    avg_wave_height_m: float
    max_wave_height_m: float
    avg_wind_speed_kt: float
    max_wind_speed_kt: float
    conditions: Conditions

    def to_dict(self) -> dict:
        return {
            "arrival_time": format_utc(self.arrival_time),
            "bunkering_window_hours": self.bunkering_window_hours,
            "avg_wave_height_m": round(self.avg_wave_height_m, 2),
            "max_wave_height_m": round(self.max_wave_height_m, 2),
            "avg_wind_speed_kt": round(self.avg_wind_speed_kt, 1),
            "max_wind_speed_kt": round(self.max_wind_speed_kt, 1),
            "conditions": self.conditions.value,
        }


@dataclass
class SafeWindow:
    starts_at: datetime
    duration_hours: float

    def to_dict(self) -> dict:
        return {"starts_at": format_utc(self.starts_at), "duration_hours": self.duration_hours}


@dataclass
class PortSafetyResult:
    """Bunkering feasibility verdict for one port."""
    port_code: str
    port_name: str
    bunkering_feasible: bool
    weather_risk: WeatherRisk
    weather_during_bunkering: BunkeringWeather
    recommendation: str
    next_good_window: Optional[SafeWindow] = None

    def to_dict(self) -> dict:
        result = {
            "port_code": self.port_code,
            "port_name": self.port_name,
            "bunkering_feasible": self.bunkering_feasible,
            "weather_risk": self.weather_risk.value,
            "weather_during_bunkering": self.weather_during_bunkering.to_dict(),
            "recommendation": self.recommendation,
        }
        if self.next_good_window is not None:
            result["next_good_window"] = self.next_good_window.to_dict()
        return result


def window_samples(series: HourlySeries, start: datetime, end: datetime) -> List[HourlySample]:
    """
    Samples inside [start, end]; the single closest sample to start when
    none fall inside.

    Raises:
        StructuralResponse: If the series has no usable samples at all
    """
    samples = series.between(start, end)
    if samples:
        return samples
    closest = series.nearest(start)
    if closest is None:
        raise StructuralResponse("No usable hourly samples at port position")
    return [closest]


def find_next_good_window(
    series: HourlySeries,
    arrival: datetime,
    duration_hours: float,
    search_hours: float = 48,
) -> Optional[SafeWindow]:
    """
    First block of consecutive safe hourly samples long enough for bunkering.

    Every hourly sample in [start, start + duration_hours] must be safe, so a
    block needs floor(duration_hours) + 1 samples one hour apart, the same
    samples assess_port would check for an arrival at `start`. The window
    must end within `search_hours` of arrival.
    """
    needed = math.floor(duration_hours) + 1
    search_end = arrival + timedelta(hours=search_hours)
    latest_start = search_end - timedelta(hours=duration_hours)

    run: List[HourlySample] = []
    for sample in series.between(arrival, search_end):
        if not is_safe(sample.wave_height_m, sample.wind_speed_kt):
            run = []
            continue
        if run and sample.time - run[-1].time != timedelta(hours=1):
            run = []
        run.append(sample)
        if len(run) >= needed:
            start = run[-needed].time
            if start <= latest_start:
                return SafeWindow(starts_at=start, duration_hours=duration_hours)
    return None


def build_recommendation(feasible: bool, conditions: Conditions, weather: BunkeringWeather,
                         next_window: Optional[SafeWindow], search_hours: float) -> str:
    if feasible:
        if conditions == Conditions.EXCELLENT:
            return "Excellent conditions for bunkering. Proceed as planned."
        if conditions == Conditions.GOOD:
            return "Good conditions for bunkering. Proceed as planned."
        return ("Marginal conditions for bunkering. Operations feasible but monitor "
                "weather closely and keep contingency plans ready.")

    text = (
        f"Unsafe conditions for bunkering (max waves {weather.max_wave_height_m:.1f}m, "
        f"max wind {weather.max_wind_speed_kt:.0f}kt). Delay bunkering until conditions improve."
    )
    if next_window is not None:
        text += (
            f" Next safe {next_window.duration_hours:g}h window starts "
            f"{format_utc(next_window.starts_at)}."
        )
    else:
        text += f" No safe window found within {search_hours:g}h of arrival; consider an alternative port."
    return text


def assess_port(
    port: BunkerPort,
    series: HourlySeries,
    duration_hours: float,
    search_hours: float = 48,
) -> PortSafetyResult:
    """Evaluate one port's bunkering window against its hourly series."""
    arrival = port.estimated_arrival
    samples = window_samples(series, arrival, arrival + timedelta(hours=duration_hours))
    waves = np.array([s.wave_height_m for s in samples])
    winds = np.array([s.wind_speed_kt for s in samples])

    avg_wave, max_wave = float(np.mean(waves)), float(np.max(waves))
    avg_wind, max_wind = float(np.mean(winds)), float(np.max(winds))

    feasible = is_safe(max_wave, max_wind)
    conditions = classify_conditions(avg_wave, avg_wind, max_wave, max_wind)
    weather = BunkeringWeather(
        arrival_time=arrival,
        bunkering_window_hours=duration_hours,
        avg_wave_height_m=avg_wave,
        max_wave_height_m=max_wave,
        avg_wind_speed_kt=avg_wind,
        max_wind_speed_kt=max_wind,
        conditions=conditions,
    )

    next_window = None
    if not feasible:
        next_window = find_next_good_window(series, arrival, duration_hours, search_hours)

    return PortSafetyResult(
        port_code=port.port_code,
        port_name=port.port_name,
        bunkering_feasible=feasible,
        weather_risk=classify_risk(max_wave, max_wind),
        weather_during_bunkering=weather,
        recommendation=build_recommendation(feasible, conditions, weather, next_window, search_hours),
        next_good_window=next_window,
    )


def failed_result(port: BunkerPort, duration_hours: float, error: Exception) -> PortSafetyResult:
    """Verdict for a port whose forecast could not be fetched."""
    message = getattr(error, "message", None) or str(error) or "Unknown error"
    return PortSafetyResult(
        port_code=port.port_code,
        port_name=port.port_name,
        bunkering_feasible=False,
        weather_risk=WeatherRisk.HIGH,
        weather_during_bunkering=BunkeringWeather(
            arrival_time=port.estimated_arrival,
            bunkering_window_hours=duration_hours,
            avg_wave_height_m=0.0,
            max_wave_height_m=0.0,
            avg_wind_speed_kt=0.0,
            max_wind_speed_kt=0.0,
            conditions=Conditions.UNSAFE,
        ),
        recommendation=f"Unable to fetch weather data: {message}",
    )


class PortWeatherSafetyEvaluator:
    """
    Evaluate bunkering safety for a list of ports.

    Ports are fetched concurrently on a bounded pool; results keep the
    input order.
    """

    def __init__(
        self,
        client: OpenMeteoMarineClient,
        settings: Optional[Settings] = None,
        metrics: Optional[FetchMetrics] = None,
    ):
        self.client = client
        self.settings = settings or get_settings()
        self.metrics = metrics or FetchMetrics()

    def evaluate(self, request: Any, cancel_event: Optional[threading.Event] = None) -> List[PortSafetyResult]:
        """
        Args:
            request: PortWeatherRequest or mapping with a bunker_ports list
            cancel_event: Cancels pending and in-flight port fetches once set

        Returns:
            One PortSafetyResult per port, same order

        Raises:
            InvalidInput: If the request fails validation
            PipelineCancelled: If cancel_event is set during the run
        """
        req = parse_input(PortWeatherRequest, request)
        ports = req.bunker_ports
        workers = max(1, min(self.settings.forecast_max_workers, len(ports)))
        results: List[PortSafetyResult] = []

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="port-weather") as executor:
            futures = [executor.submit(self._fetch_series, port, cancel_event) for port in ports]
            try:
                for port, future in zip(ports, futures):
                    results.append(self._collect(port, future, cancel_event))
            except PipelineCancelled:
                executor.shutdown(wait=False, cancel_futures=True)
                logger.warning(f"Port weather run cancelled after {len(results)}/{len(ports)} ports")
                raise

        feasible = sum(1 for r in results if r.bunkering_feasible)
        logger.info(f"Port weather: {len(ports)} ports evaluated, {feasible} feasible for bunkering")
        return results

    def _duration(self, port: BunkerPort) -> float:
        return port.bunkering_duration_hours or self.settings.default_bunkering_hours

    def _fetch_series(self, port: BunkerPort, cancel_event: Optional[threading.Event]) -> HourlySeries:
        self.metrics.increment("port_provider_calls")
        with self.metrics.timer("port_provider_call"):
            return self.client.fetch_hourly(port.lat, port.lon, cancel_event=cancel_event)

    def _collect(self, port: BunkerPort, future, cancel_event: Optional[threading.Event]) -> PortSafetyResult:
        duration = self._duration(port)
        try:
            series = await_future(future, cancel_event)
            return assess_port(port, series, duration, self.settings.safe_window_search_hours)
        except (UpstreamUnavailable, StructuralResponse) as e:
            self.metrics.increment("port_failures")
            logger.error(f"Port weather failed for {port.port_code} ({port.port_name}): {e}")
            return failed_result(port, duration, e)


def check_port_weather(
    request: Any,
    client: OpenMeteoMarineClient,
    settings: Optional[Settings] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[PortSafetyResult]:
    """Entry point: bunker ports with arrival windows -> safety verdicts."""
    return PortWeatherSafetyEvaluator(client, settings=settings).evaluate(request, cancel_event=cancel_event)
