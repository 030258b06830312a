"""Shared geodesic distance utilities.

Canonical haversine implementations used by the geofence evaluator, the ETA
predictor and the history analyzer.
"""
from __future__ import annotations

import math

_EARTH_RADIUS_KM: float = 6371.0        # Earth mean radius in kilometres
_EARTH_RADIUS_M: float = 6_371_000.0    # Earth mean radius in metres
_EARTH_RADIUS_NM: float = 3440.065      # Earth mean radius in nautical miles


def to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180)


def _central_angle(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = to_radians(lat1), to_radians(lat2)
    dphi = to_radians(lat2 - lat1)
    dlam = to_radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    )
    # Rounding can push a past 1.0 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS-84 coordinates."""
    return _EARTH_RADIUS_M * _central_angle(lat1, lon1, lat2, lon2)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two WGS-84 coordinates."""
    return _EARTH_RADIUS_KM * _central_angle(lat1, lon1, lat2, lon2)


def haversine_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in nautical miles between two WGS-84 coordinates."""
    return _EARTH_RADIUS_NM * _central_angle(lat1, lon1, lat2, lon2)


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2, degrees in [0, 360)."""
    phi1, phi2 = to_radians(lat1), to_radians(lat2)
    dlam = to_radians(lon2 - lon1)
    y = math.sin(dlam) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlam)
    return math.degrees(math.atan2(y, x)) % 360.0


def is_valid_position(lat: float | None, lon: float | None) -> bool:
    """True for an in-range, non-null-island coordinate pair."""
    if lat is None or lon is None:
        return False
    if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        return False
    return not (lat == 0 and lon == 0)
