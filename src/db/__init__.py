"""Database persistence module."""

from .database import ensure_seeded, init_database
from .schema import BarangayRate, DriverStats, ScheduledRide, StoreMetadata, Trip
from .transaction import transaction

__all__ = [
    "init_database",
    "ensure_seeded",
    "BarangayRate",
    "DriverStats",
    "ScheduledRide",
    "StoreMetadata",
    "Trip",
    "transaction",
]
