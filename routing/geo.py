#Purpose: Pure geospatial helpers shared by routing, ETA and tracking.
#Great-circle (haversine) distance, degree/radian conversion
#and small offset / polyline helpers.
#No I/O, no provider calls.

from __future__ import annotations

import math
from typing import Tuple

#internal coordinate type :(lat,lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0


def to_radians(degrees: float) -> float:
    return degrees * math.pi / 180.0


def to_degrees(radians: float) -> float:
    return radians * 180.0 / math.pi


def haversine_km(origin: LatLon, destination: LatLon) -> float:
    """
    Great-circle distance in kilometres between two (lat, lon) pairs.
    """
    lat1, lon1 = origin
    lat2, lon2 = destination

    delta_lat = to_radians(lat2 - lat1)
    delta_lon = to_radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(to_radians(lat1)) * math.cos(to_radians(lat2)) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def offset(point: LatLon, delta_lat: float, delta_lon: float) -> LatLon:
    """
    Shift a point by a number of degrees, clamping latitude and wrapping longitude
    so the result is always a valid coordinate.
    """
    lat = max(-90.0, min(90.0, point[0] + delta_lat))
    lon = ((point[1] + delta_lon + 180.0) % 360.0) - 180.0
    return (lat, lon)


def straight_line(origin: LatLon, destination: LatLon) -> list:
    """Two-point polyline used when no road geometry is available."""
    return [origin, destination]
