"""Fare calculation engine."""

from .calculator import (
    FareCalculator,
    FareQuote,
    is_night_trip,
    round_half_up,
    validate_distance_km,
)
from .matrix import (
    LOPEZ_FARES,
    FareRoute,
    all_destinations,
    find_route,
    normalize_destination,
    search_destinations,
)
from .rates import RateSource, StoreRateSource

__all__ = [
    "FareCalculator",
    "FareQuote",
    "FareRoute",
    "LOPEZ_FARES",
    "RateSource",
    "StoreRateSource",
    "all_destinations",
    "find_route",
    "is_night_trip",
    "normalize_destination",
    "round_half_up",
    "search_destinations",
    "validate_distance_km",
]
