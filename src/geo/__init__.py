"""Geographic helpers."""

from .distance import haversine_distance_km, haversine_distance_m, is_within_radius_km

__all__ = ["haversine_distance_km", "haversine_distance_m", "is_within_radius_km"]
