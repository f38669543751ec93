"""
Historical (climatological) sea-condition estimates.

Used when a position lies beyond the provider's forecast horizon, or when
the live call fails. Values follow general oceanic patterns from pilot
charts: calm doldrums, moderate trade-wind belt, rough westerlies, with a
boreal-winter amplification.

Estimates are a deterministic function of (lat, lon, hour): the variation
term is drawn from a generator seeded by the rounded position and hour, so
repeated runs return identical values.
"""

import zlib
from dataclasses import dataclass
from datetime import datetime

import numpy as np


@dataclass(frozen=True)
class HistoricalEstimate:
    """Climatological sea conditions at a position and time."""
    wave_height_m: float
    wind_speed_kt: float
    wind_direction_deg: float


class ClimatologyEstimator:
    """Built-in climatology keyed on latitude band and month."""

    # Boreal winter months and their amplification of wave and wind
    WINTER_MONTHS = (12, 1, 2)
    WINTER_FACTOR = 1.3

    # Latitude band limits (absolute degrees)
    TROPICAL_LAT = 10.0
    HIGH_LAT = 40.0

    # Base (wave m, wind kt) per band
    TROPICAL_BASE = (1.0, 10.0)
    MID_BASE = (1.5, 15.0)
    HIGH_BASE = (2.5, 22.0)

    # Relative spread of the seeded variation term
    VARIATION = 0.1

    def estimate(self, lat: float, lon: float, when: datetime) -> HistoricalEstimate:
        """
        Estimate conditions for a position and time.

        Args:
            lat, lon: Position in decimal degrees
            when: UTC datetime

        Returns:
            HistoricalEstimate
        """
        abs_lat = abs(lat)
        is_north = lat >= 0

        if abs_lat < self.TROPICAL_LAT:
            base_wave, base_wind = self.TROPICAL_BASE
            prevailing = 90.0 if is_north else 270.0  # Light easterlies
        elif abs_lat <= self.HIGH_LAT:
            base_wave, base_wind = self.MID_BASE
            prevailing = 45.0 if is_north else 135.0  # NE / SE trades
        else:
            base_wave, base_wind = self.HIGH_BASE
            prevailing = 270.0  # Westerlies

        seasonal = self.WINTER_FACTOR if when.month in self.WINTER_MONTHS else 1.0

        rng = np.random.default_rng(self._seed(lat, lon, when))
        wave_jitter, wind_jitter = rng.uniform(-self.VARIATION, self.VARIATION, size=2)
        direction_jitter = rng.uniform(-30.0, 30.0)

        return HistoricalEstimate(
            wave_height_m=round(float(base_wave * seasonal * (1 + wave_jitter)), 2),
            wind_speed_kt=round(float(base_wind * seasonal * (1 + wind_jitter)), 1),
            wind_direction_deg=round(float(prevailing + direction_jitter), 1) % 360,
        )

    @staticmethod
    def _seed(lat: float, lon: float, when: datetime) -> int:
        key = f"{lat:.2f},{lon:.2f},{when:%Y-%m-%dT%H}"
        return zlib.crc32(key.encode("utf-8"))
