"""
Test builders shared across unit and integration tests.

Provider-shaped payloads, ready-made hourly series and a fake provider
client that records its calls.
"""

import threading
import time
from datetime import datetime, timedelta, timezone

from fuelsense.data.open_meteo_client import HourlySample, HourlySeries, parse_hourly_payload

UTC = timezone.utc

# "Now" used for horizon checks in tests
FIXED_NOW = datetime(2024, 12, 20, 0, 0, tzinfo=UTC)


def _value(value, i):
    if callable(value):
        return value(i)
    if isinstance(value, (list, tuple)):
        return value[i]
    return value


def hourly_payload(start: datetime, hours: int, wave=1.0, wind_ms=5.0, direction=90.0) -> dict:
    """
    Provider-shaped JSON body with `hours` hourly samples from `start`.

    wave / wind_ms / direction may be a scalar, a list, or a callable of the
    hour index.
    """
    times, waves, winds, dirs = [], [], [], []
    for i in range(hours):
        times.append((start + timedelta(hours=i)).strftime("%Y-%m-%dT%H:%M"))
        waves.append(_value(wave, i))
        winds.append(_value(wind_ms, i))
        dirs.append(_value(direction, i))
    return {
        "latitude": 0.0,
        "longitude": 0.0,
        "hourly_units": {"wave_height": "m", "wind_speed_10m": "m/s"},
        "hourly": {
            "time": times,
            "wave_height": waves,
            "wind_speed_10m": winds,
            "wind_direction_10m": dirs,
        },
    }


def make_series(start: datetime, hours: int, wave=1.0, wind_kt=10.0, direction=90.0,
                lat: float = 0.0, lon: float = 0.0) -> HourlySeries:
    """HourlySeries with wind already in knots."""
    samples = tuple(
        HourlySample(
            time=start + timedelta(hours=i),
            wave_height_m=float(_value(wave, i)),
            wind_speed_kt=float(_value(wind_kt, i)),
            wind_direction_deg=float(_value(direction, i)),
        )
        for i in range(hours)
    )
    return HourlySeries(latitude=lat, longitude=lon, samples=samples)


class FakeMarineClient:
    """
    Stand-in for OpenMeteoMarineClient.

    Serves a series or a provider-shaped body (run through the real parser)
    per rounded coordinate, falls back to the default factory, raises
    configured errors and records every call.
    """

    def __init__(self, series=None, errors=None, default=None, delay: float = 0.0, payloads=None):
        self.series = series or {}
        self.errors = errors or {}
        self.payloads = payloads or {}
        self.default = default or (lambda lat, lon: make_series(FIXED_NOW, 16 * 24, lat=lat, lon=lon))
        self.delay = delay
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def fetch_hourly(self, lat, lon, cancel_event=None):
        with self._lock:
            self.calls.append((lat, lon))
        if self.delay:
            time.sleep(self.delay)
        key = (round(lat, 2), round(lon, 2))
        if key in self.errors:
            raise self.errors[key]
        if key in self.payloads:
            return parse_hourly_payload(self.payloads[key], lat, lon)
        if key in self.series:
            return self.series[key]
        return self.default(lat, lon)

    def close(self):
        self.closed = True
