"""Broadcast dispatch: every polling driver sees every open request.

There is no driver-to-trip assignment here. Drivers list candidates and race
to accept; the trip store's conditional update decides the single winner.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import AlreadyClaimedError, NotFoundError
from db.repositories.trip_repository import TripRepository
from db.transaction import transaction
from db.utils import utc_now
from dispatch_logging import log_trip_context
from fares.calculator import round_half_up
from geo.distance import haversine_distance_km
from settings import DispatchSettings
from trip import CLAIMABLE_STATUSES, DRIVER_ASSIGNED_STATUSES, TERMINAL_STATUSES, DriverProfile, Trip

from .driver_location_index import DriverLocationProvider

logger = logging.getLogger(__name__)

_CLAIMED_OR_TERMINAL = DRIVER_ASSIGNED_STATUSES | TERMINAL_STATUSES


@dataclass(frozen=True)
class DispatchCandidate:
    """A claimable trip as shown to one driver."""

    trip: Trip
    distance_km: float | None
    eta_minutes: int

    @property
    def trip_id(self) -> str:
        return self.trip.trip_id


class BookingDispatcher:
    """Lists open trips for drivers and resolves concurrent accepts."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Any,
        settings: DispatchSettings | None = None,
        location_index: DriverLocationProvider | None = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or DispatchSettings()
        self._location_index = location_index

    def list_candidates(
        self,
        driver_location: tuple[float, float] | None = None,
        now: datetime | None = None,
    ) -> list[DispatchCandidate]:
        """Open trips requested within the staleness window, nearest pickup first.

        Trips without pickup coordinates (or any trip, when the driver's own
        location is unknown) keep their request order after the ranked ones.
        """
        now = now or utc_now()
        cutoff = now - timedelta(minutes=self._settings.stale_after_minutes)

        with self._session_factory() as session, transaction(session):
            trips = TripRepository(session).list_candidates(created_after=cutoff)

        candidates = [
            self._to_candidate(trip, driver_location)
            for trip in trips
            if trip.status in CLAIMABLE_STATUSES
            and trip.status not in _CLAIMED_OR_TERMINAL
            and trip.driver is None
            and trip.created_at is not None
            and now - trip.created_at < timedelta(minutes=self._settings.stale_after_minutes)
        ]
        candidates.sort(
            key=lambda c: (c.distance_km is None, c.distance_km if c.distance_km is not None else 0.0)
        )

        logger.debug("Listed %d candidate trips", len(candidates))
        return candidates

    def accept(self, trip_id: str, driver: DriverProfile, now: datetime | None = None) -> Trip:
        """Claim a trip for ``driver``.

        Raises:
            NotFoundError: No trip with this id.
            AlreadyClaimedError: The trip was claimed, cancelled or completed
                first, or a concurrent accept won the conditional update.
        """
        now = now or utc_now()

        with log_trip_context(trip_id, driver_id=driver.driver_id):
            with self._session_factory() as session, transaction(session):
                repo = TripRepository(session)
                current = repo.get(trip_id)
                if current is None:
                    raise NotFoundError(f"Trip {trip_id} not found", details={"trip_id": trip_id})

                if not current.is_claimable:
                    logger.info(
                        "Accept rejected: trip already %s by %s",
                        current.status.value,
                        current.driver_id,
                    )
                    raise AlreadyClaimedError(
                        f"Trip {trip_id} is no longer available",
                        details={"trip_id": trip_id, "status": current.status.value},
                    )

                if not repo.try_assign_driver(trip_id, driver, now):
                    logger.info("Accept lost the race for trip")
                    raise AlreadyClaimedError(
                        f"Trip {trip_id} was accepted by another driver",
                        details={"trip_id": trip_id},
                    )

                accepted = repo.get(trip_id, refresh=True)

            if self._location_index is not None:
                self._location_index.set_status(driver.driver_id, "on_ride")

            logger.info("Trip accepted")

        return accepted  # type: ignore[return-value]

    def _to_candidate(
        self,
        trip: Trip,
        driver_location: tuple[float, float] | None,
    ) -> DispatchCandidate:
        pickup = trip.pickup.coordinates
        if driver_location is None or pickup is None:
            return DispatchCandidate(
                trip=trip,
                distance_km=None,
                eta_minutes=self._settings.default_eta_minutes,
            )

        distance = haversine_distance_km(driver_location[0], driver_location[1], *pickup)
        return DispatchCandidate(
            trip=trip,
            distance_km=distance,
            eta_minutes=self.eta_minutes(distance),
        )

    def eta_minutes(self, distance_km: float) -> int:
        """Whole-minute pickup ETA at the configured average speed, at least 1."""
        minutes = distance_km / self._settings.average_speed_kmh * 60
        return max(1, round_half_up(minutes))
