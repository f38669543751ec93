"""
Position timeline generation.

Calculates vessel position at regular intervals along a multi-leg route:
- Great-circle (haversine) distance per leg
- Leg duration from a constant speed
- Positions every sampling interval inside each leg, by straight
  parametric blend of the leg endpoints
- The leg's end waypoint is always emitted exactly
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional

from fuelsense.config import Settings, get_settings
from fuelsense.inputs import Coordinates, TimelineRequest, parse_input
from fuelsense.routes.geo import format_utc, haversine_distance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelinePosition:
    """Vessel position at a point in time."""
    lat: float
    lon: float
    datetime: datetime
    distance_from_start_nm: float
    segment_index: int

    def to_dict(self) -> dict:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "datetime": format_utc(self.datetime),
            "distance_from_start_nm": self.distance_from_start_nm,
            "segment_index": self.segment_index,
        }


def interpolate_position(start: Coordinates, end: Coordinates, fraction: float):
    """Linear blend of two waypoints; fraction 0 -> start, 1 -> end."""
    if start.lat == end.lat and start.lon == end.lon:
        return start.lat, start.lon
    lat = start.lat + (end.lat - start.lat) * fraction
    lon = start.lon + (end.lon - start.lon) * fraction
    return lat, lon


class TimelineGenerator:
    """
    Generate a time-ordered vessel position sequence for a route.

    Pure and synchronous; performs no I/O.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def generate(self, request: Any) -> List[TimelinePosition]:
        """
        Build the position timeline.

        Args:
            request: TimelineRequest or a mapping with waypoints,
                vessel_speed_knots, departure_datetime and optional
                sampling_interval_hours

        Returns:
            Positions ordered by time with cumulative distance

        Raises:
            InvalidInput: If the request fails validation
        """
        req = parse_input(TimelineRequest, request)
        interval = req.sampling_interval_hours or self.settings.default_sampling_interval_hours
        speed = req.vessel_speed_knots
        departure = req.departure_datetime
        waypoints = req.waypoints

        if len(waypoints) == 1:
            return [TimelinePosition(
                lat=waypoints[0].lat,
                lon=waypoints[0].lon,
                datetime=departure,
                distance_from_start_nm=0.0,
                segment_index=0,
            )]

        positions = [TimelinePosition(
            lat=waypoints[0].lat,
            lon=waypoints[0].lon,
            datetime=departure,
            distance_from_start_nm=0.0,
            segment_index=0,
        )]
        cumulative_nm = 0.0

        for segment_index in range(len(waypoints) - 1):
            start = waypoints[segment_index]
            end = waypoints[segment_index + 1]

            segment_nm = haversine_distance(start.lat, start.lon, end.lat, end.lon)
            segment_hours = segment_nm / speed
            hours_to_segment = cumulative_nm / speed

            step = 1
            while step * interval < segment_hours:
                sample_hours = step * interval
                fraction = sample_hours / segment_hours
                lat, lon = interpolate_position(start, end, fraction)
                positions.append(TimelinePosition(
                    lat=lat,
                    lon=lon,
                    datetime=departure + timedelta(hours=hours_to_segment + sample_hours),
                    distance_from_start_nm=cumulative_nm + segment_nm * fraction,
                    segment_index=segment_index,
                ))
                step += 1

            cumulative_nm += segment_nm
            positions.append(TimelinePosition(
                lat=end.lat,
                lon=end.lon,
                datetime=departure + timedelta(hours=cumulative_nm / speed),
                distance_from_start_nm=cumulative_nm,
                segment_index=segment_index,
            ))

        unique = _drop_duplicates(positions)
        logger.info(
            f"Timeline: {len(waypoints)} waypoints, {cumulative_nm:.1f} nm at {speed} kts "
            f"-> {len(unique)} positions every {interval}h"
        )
        return unique


def _drop_duplicates(positions: List[TimelinePosition]) -> List[TimelinePosition]:
    """Keep the first occurrence of each (lat, lon, datetime) triple."""
    seen = set()
    unique = []
    for pos in positions:
        key = (f"{pos.lat:.6f}", f"{pos.lon:.6f}", pos.datetime)
        if key not in seen:
            seen.add(key)
            unique.append(pos)
    return unique


def calculate_weather_timeline(request: Any, settings: Optional[Settings] = None) -> List[TimelinePosition]:
    """Entry point: waypoints + speed + departure -> position timeline."""
    return TimelineGenerator(settings).generate(request)
