"""Centralized geographic distance calculations.

Straight-line (Haversine) distances are the only geometry the dispatch
core uses: candidate ranking, pickup ETAs and demand-zone membership.
"""

from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_M = 6_371_000  # Earth radius in meters

# ~9e-6 degrees per meter (1 / 111,320 m per degree of latitude)
_LAT_DEGREES_PER_METER: float = 1.0 / 111_320


def haversine_distance_m(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance between the two points in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_M * c


def haversine_distance_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Convenience wrapper around haversine_distance_m; fares, ETAs and zone
    radii are all expressed in kilometers.
    """
    return haversine_distance_m(lat1, lon1, lat2, lon2) / 1000.0


def is_within_radius_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    radius_km: float,
) -> bool:
    """Check if two points are within ``radius_km`` of each other.

    A flat-earth bounding box rejects far points before the Haversine call.
    The box is widened by 1% so boundary points are never rejected early.
    """
    threshold_m = radius_km * 1000.0
    lat_threshold = threshold_m * _LAT_DEGREES_PER_METER * 1.01
    if abs(lat2 - lat1) > lat_threshold:
        return False
    lon_scale = max(cos(radians(max(abs(lat1), abs(lat2)))), 0.01)
    if abs(lon2 - lon1) > lat_threshold / lon_scale:
        return False

    return haversine_distance_m(lat1, lon1, lat2, lon2) <= threshold_m
