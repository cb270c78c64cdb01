"""
Great-circle geodesy helpers.

Distance, interpolation and time-based positioning along the great circle
between two points. Public functions take and return degrees; all
trigonometry happens in radians.

Longitude wraparound at +/-180 degrees is not handled specially.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0
KM_TO_NAUTICAL_MILES = 0.539957


@dataclass(frozen=True)
class GeoPoint:
    """A (longitude, latitude) pair in degrees."""
    lon: float
    lat: float

    def __post_init__(self):
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")

    @classmethod
    def from_lon_lat(cls, coords) -> GeoPoint:
        """Build from a GeoJSON-ordered (lon, lat) sequence."""
        lon, lat = coords
        return cls(lon=float(lon), lat=float(lat))

    def as_lon_lat(self) -> list[float]:
        return [self.lon, self.lat]


@dataclass(frozen=True)
class FlightPath:
    """Two-endpoint great-circle route flown in a fixed total time."""
    origin: GeoPoint
    destination: GeoPoint
    total_duration_minutes: float

    def __post_init__(self):
        if self.total_duration_minutes <= 0:
            raise ValueError(
                f"Total duration must be positive, got {self.total_duration_minutes}"
            )


def _angular_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine central angle in radians between two points given in radians."""
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    # Rounding can push a a hair past 1.0 for near-antipodal points
    return 2 * math.asin(math.sqrt(min(1.0, a)))


def distance(a: GeoPoint, b: GeoPoint, radius_km: float = EARTH_RADIUS_KM) -> float:
    """
    Calculate the great-circle distance between two points in kilometers.

    Args:
        a: First point.
        b: Second point.
        radius_km: Sphere radius; defaults to the mean Earth radius.

    Returns:
        Distance in kilometers.
    """
    c = _angular_distance(
        math.radians(a.lat), math.radians(a.lon),
        math.radians(b.lat), math.radians(b.lon),
    )
    return radius_km * c


def distance_nautical_miles(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in nautical miles."""
    return distance(a, b) * KM_TO_NAUTICAL_MILES


def interpolate(a: GeoPoint, b: GeoPoint, fraction: float) -> GeoPoint:
    """
    Return the point a given fraction of the way along the great circle from a to b.

    The fraction is not clamped: values below 0 or above 1 extrapolate
    along the same great circle.

    Args:
        a: Start point.
        b: End point.
        fraction: 0 returns a, 1 returns b.

    Returns:
        Intermediate (or extrapolated) point.
    """
    lat1, lon1 = math.radians(a.lat), math.radians(a.lon)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lon)

    d = _angular_distance(lat1, lon1, lat2, lon2)
    if d == 0:
        return a

    A = math.sin((1 - fraction) * d) / math.sin(d)
    B = math.sin(fraction * d) / math.sin(d)

    x = A * math.cos(lat1) * math.cos(lon1) + B * math.cos(lat2) * math.cos(lon2)
    y = A * math.cos(lat1) * math.sin(lon1) + B * math.cos(lat2) * math.sin(lon2)
    z = A * math.sin(lat1) + B * math.sin(lat2)

    lat = math.atan2(z, math.sqrt(x * x + y * y))
    lon = math.atan2(y, x)

    return GeoPoint(lon=math.degrees(lon), lat=math.degrees(lat))


def position_at_time(path: FlightPath, elapsed_minutes: float) -> GeoPoint:
    """Aircraft position after elapsed_minutes of a flight along path."""
    fraction = elapsed_minutes / path.total_duration_minutes
    return interpolate(path.origin, path.destination, fraction)


def path_midpoint(path: FlightPath) -> GeoPoint:
    """Point halfway along the great circle between origin and destination."""
    return interpolate(path.origin, path.destination, 0.5)


def format_coordinates(point: GeoPoint) -> str:
    """Format a point for display, e.g. '39.0458°N, 84.6627°W'."""
    ns = "N" if point.lat >= 0 else "S"
    ew = "W" if point.lon < 0 else "E"
    return f"{abs(point.lat):.4f}°{ns}, {abs(point.lon):.4f}°{ew}"
