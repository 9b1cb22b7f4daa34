"""Repository layer for database CRUD operations."""

from .barangay_rate_repository import BarangayRateRepository, RateCard
from .driver_stats_repository import DriverStatsRepository, DriverStatsSnapshot
from .scheduled_ride_repository import ScheduledRideRepository
from .trip_repository import TripRepository

__all__ = [
    "BarangayRateRepository",
    "DriverStatsRepository",
    "DriverStatsSnapshot",
    "RateCard",
    "ScheduledRideRepository",
    "TripRepository",
]
