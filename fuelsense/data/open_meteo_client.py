"""
Open-Meteo Marine forecast client.

Fetches a 16-day hourly series for one coordinate:
- wave_height (m)
- wind_speed_10m (requested in m/s, converted to knots)
- wind_direction_10m (degrees, coming from)

All times are UTC. A response missing any hourly array is a structural
error and is never retried; timeouts, connection failures, 408/429 and
5xx responses are retried with exponential backoff.

API Reference: https://open-meteo.com/en/docs/marine-weather-api
"""

import logging
import threading
import time
from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import requests

from fuelsense.config import Settings, get_settings
from fuelsense.errors import PipelineCancelled, StructuralResponse, UpstreamUnavailable
from fuelsense.resilience import retry_policy
from fuelsense.routes.geo import parse_utc

logger = logging.getLogger(__name__)

MS_TO_KNOTS = 1.944

REQUIRED_ARRAYS = ("time", "wave_height", "wind_speed_10m", "wind_direction_10m")


@dataclass(frozen=True)
class HourlySample:
    """One usable hour of provider data."""
    time: datetime
    wave_height_m: float
    wind_speed_kt: float
    wind_direction_deg: float


@dataclass(frozen=True)
class HourlySeries:
    """Hourly provider series for one coordinate, sorted by time."""
    latitude: float
    longitude: float
    samples: tuple

    def __len__(self) -> int:
        return len(self.samples)

    def nearest(self, target: datetime, tolerance: Optional[timedelta] = None) -> Optional[HourlySample]:
        """
        Closest sample to target; None if the series is empty or the
        closest sample lies outside the tolerance.
        """
        if not self.samples:
            return None
        times = [s.time for s in self.samples]
        idx = bisect_left(times, target)
        candidates = [self.samples[i] for i in (idx - 1, idx) if 0 <= i < len(self.samples)]
        best = min(candidates, key=lambda s: abs(s.time - target))
        if tolerance is not None and abs(best.time - target) > tolerance:
            return None
        return best

    def between(self, start: datetime, end: datetime) -> List[HourlySample]:
        """Samples with start <= time <= end."""
        return [s for s in self.samples if start <= s.time <= end]


def parse_hourly_payload(data: Any, latitude: float, longitude: float) -> HourlySeries:
    """
    Convert a provider JSON body into an HourlySeries.

    Hours with a null value in any array (the provider returns null over
    land or outside model coverage) are dropped.

    Raises:
        StructuralResponse: If the hourly arrays are missing or inconsistent
    """
    if not isinstance(data, dict) or not isinstance(data.get("hourly"), dict):
        raise StructuralResponse("Invalid response format: missing hourly data")

    hourly = data["hourly"]
    missing = [name for name in REQUIRED_ARRAYS if not isinstance(hourly.get(name), list)]
    if missing:
        raise StructuralResponse(
            f"Invalid response format: missing required hourly arrays ({', '.join(missing)})"
        )

    lengths = {len(hourly[name]) for name in REQUIRED_ARRAYS}
    if len(lengths) != 1:
        raise StructuralResponse("Invalid response format: hourly arrays differ in length")

    samples = []
    for stamp, wave, wind_ms, wind_dir in zip(
        hourly["time"], hourly["wave_height"], hourly["wind_speed_10m"], hourly["wind_direction_10m"]
    ):
        if wave is None or wind_ms is None or wind_dir is None:
            continue
        try:
            when = parse_utc(stamp)
        except ValueError as e:
            raise StructuralResponse(f"Invalid response format: bad timestamp {stamp!r}") from e
        try:
            sample = HourlySample(
                time=when,
                wave_height_m=max(float(wave), 0.0),
                wind_speed_kt=max(float(wind_ms), 0.0) * MS_TO_KNOTS,
                wind_direction_deg=float(wind_dir) % 360,
            )
        except (TypeError, ValueError) as e:
            raise StructuralResponse(f"Invalid response format: non-numeric value at {stamp!r}") from e
        samples.append(sample)

    samples.sort(key=lambda s: s.time)
    return HourlySeries(latitude=latitude, longitude=longitude, samples=tuple(samples))


class OpenMeteoMarineClient:
    """
    Synchronous client for the Open-Meteo marine endpoint.

    Usage:
        client = OpenMeteoMarineClient()
        series = client.fetch_hourly(1.29, 103.85)
        sample = series.nearest(datetime(2024, 12, 25, 8, tzinfo=timezone.utc))
    """

    HOURLY_VARIABLES = ",".join(REQUIRED_ARRAYS[1:])

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            settings: Provider URL, horizon, timeout and retry settings
            session: requests session (created and owned if None)
            sleep: Backoff sleep function
        """
        self.settings = settings or get_settings()
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": self.settings.user_agent,
        })
        self._sleep = sleep

    def fetch_hourly(
        self,
        lat: float,
        lon: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> HourlySeries:
        """
        Fetch the hourly forecast series for a coordinate.

        Args:
            lat: Latitude in decimal degrees
            lon: Longitude in decimal degrees
            cancel_event: Aborts before the next attempt once set

        Returns:
            HourlySeries covering the provider horizon

        Raises:
            UpstreamUnavailable: Provider unreachable after all retries
            StructuralResponse: Provider payload unusable
            PipelineCancelled: cancel_event was set
        """
        policy = retry_policy(
            max_retries=self.settings.forecast_max_retries,
            min_wait=self.settings.forecast_backoff_s,
            max_wait=self.settings.forecast_max_backoff_s,
            cancel_event=cancel_event,
            sleep=self._sleep,
        )
        for attempt in policy:
            with attempt:
                if cancel_event is not None and cancel_event.is_set():
                    raise PipelineCancelled("Forecast fetch cancelled")
                return self._request(lat, lon)

    def _request(self, lat: float, lon: float) -> HourlySeries:
        params = {
            "latitude": round(lat, 4),
            "longitude": round(lon, 4),
            "hourly": self.HOURLY_VARIABLES,
            "forecast_days": self.settings.forecast_days,
            "wind_speed_unit": "ms",
            "timezone": "UTC",
        }
        timeout = self.settings.forecast_timeout_s

        logger.debug(f"Fetching marine forecast for lat={lat}, lon={lon}")

        try:
            response = self.session.get(self.settings.forecast_api_url, params=params, timeout=timeout)
        except requests.Timeout as e:
            raise UpstreamUnavailable(f"Open-Meteo request timed out after {timeout}s") from e
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"Network error: unable to reach Open-Meteo ({e})") from e

        status = response.status_code
        if status >= 400:
            retryable = status in (408, 429) or status >= 500
            raise UpstreamUnavailable(
                f"Open-Meteo API error: {status} - {response.text[:200]}",
                status_code=status,
                retryable=retryable,
            )

        try:
            data: Dict = response.json()
        except ValueError as e:
            raise StructuralResponse("Invalid response format: body is not JSON") from e

        series = parse_hourly_payload(data, lat, lon)
        logger.debug(f"Fetched {len(series)} hourly samples for lat={lat}, lon={lon}")
        return series

    def close(self):
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
