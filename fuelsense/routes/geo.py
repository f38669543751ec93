"""
Great-circle geometry and UTC timestamp helpers shared by the pipeline.
"""

import math
from datetime import datetime, timezone

EARTH_RADIUS_NM = 3440.065


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great circle distance between two points.

    Args:
        lat1, lon1: First point in degrees
        lat2, lon2: Second point in degrees

    Returns:
        Distance in nautical miles
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_NM * c


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate initial bearing from point 1 to point 2.

    Returns:
        Bearing in degrees [0, 360)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlon = math.radians(lon2 - lon1)

    x = math.sin(dlon) * math.cos(lat2_rad)
    y = (math.cos(lat1_rad) * math.sin(lat2_rad) -
         math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(dlon))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def relative_angle(direction_deg: float, heading_deg: float) -> float:
    """Smallest angle between a direction and the heading: 0 = ahead, 180 = astern."""
    return abs(((direction_deg - heading_deg) + 180) % 360 - 180)


def parse_utc(timestamp: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive timestamps are taken as UTC (the provider serves UTC hours
    without an offset).

    Raises:
        ValueError: If the string is not ISO-8601
    """
    if not isinstance(timestamp, str):
        raise ValueError(f"Expected ISO-8601 string, got {type(timestamp).__name__}")
    parsed = datetime.fromisoformat(timestamp.strip().replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_utc(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    if value.microsecond:
        return value.isoformat(timespec='milliseconds').replace('+00:00', 'Z')
    return value.isoformat(timespec='seconds').replace('+00:00', 'Z')
