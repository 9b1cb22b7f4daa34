"""Candidate listing, race-safe accept and driver positions."""

from .booking_dispatcher import BookingDispatcher, DispatchCandidate
from .driver_location_index import (
    ONLINE_STATUSES,
    DriverLocation,
    DriverLocationIndex,
    DriverLocationProvider,
)

__all__ = [
    "BookingDispatcher",
    "DispatchCandidate",
    "DriverLocation",
    "DriverLocationIndex",
    "DriverLocationProvider",
    "ONLINE_STATUSES",
]
