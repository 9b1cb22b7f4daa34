"""Future-dated rides: booking, race-safe driver accept, release and cancel."""

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import (
    AlreadyClaimedError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from db.repositories.scheduled_ride_repository import ScheduledRideRepository
from db.repositories.trip_repository import driver_columns
from db.transaction import transaction
from db.utils import as_utc, utc_now
from dispatch_logging import log_context
from scheduled_ride import ScheduledRide, ScheduledRideStatus
from trip import DriverProfile, Location

logger = logging.getLogger(__name__)


class ScheduledRideManager:
    """Scheduled rides share the trip store's conditional-accept discipline."""

    def __init__(self, session_factory: sessionmaker[Session] | Any):
        self._session_factory = session_factory

    def schedule_ride(
        self,
        passenger_id: str,
        pickup: Location,
        dropoff: Location,
        scheduled_at: datetime,
        notes: str | None = None,
        passenger_name: str | None = None,
        passenger_phone: str | None = None,
        now: datetime | None = None,
    ) -> ScheduledRide:
        """Book a ride for a future pickup time.

        Raises:
            ValidationError: ``scheduled_at`` is in the past.
        """
        now = now or utc_now()
        scheduled_at = as_utc(scheduled_at)
        if scheduled_at < now:
            raise ValidationError(
                "Scheduled time must not be in the past",
                details={"scheduled_at": scheduled_at.isoformat()},
            )

        ride = ScheduledRide(
            ride_id=str(uuid.uuid4()),
            passenger_id=passenger_id,
            passenger_name=passenger_name,
            passenger_phone=passenger_phone,
            pickup=pickup,
            dropoff=dropoff,
            scheduled_at=scheduled_at,
            notes=notes,
            created_at=now,
        )

        with log_context(ride_id=ride.ride_id, passenger_id=passenger_id):
            with self._session_factory() as session, transaction(session):
                created = ScheduledRideRepository(session).create(ride)
            logger.info("Ride scheduled for %s", scheduled_at.isoformat())
        return created

    def list_available(self, now: datetime | None = None) -> list[ScheduledRide]:
        now = now or utc_now()
        with self._session_factory() as session, transaction(session):
            return ScheduledRideRepository(session).list_available(now)

    def accept(
        self,
        ride_id: str,
        driver: DriverProfile,
        now: datetime | None = None,
    ) -> ScheduledRide:
        """Claim a scheduled ride; exactly one concurrent caller wins.

        Raises:
            NotFoundError: Unknown ride id.
            AlreadyClaimedError: Another driver holds it, or it is no longer open.
        """
        now = now or utc_now()

        with log_context(ride_id=ride_id, driver_id=driver.driver_id):
            with self._session_factory() as session, transaction(session):
                repo = ScheduledRideRepository(session)
                current = self._require(repo, ride_id)
                if current.status != ScheduledRideStatus.SCHEDULED or current.driver is not None:
                    raise AlreadyClaimedError(
                        f"Scheduled ride {ride_id} is no longer available",
                        details={"ride_id": ride_id, "status": current.status.value},
                    )

                if not repo.try_assign_driver(ride_id, driver, now):
                    logger.info("Scheduled accept lost the race")
                    raise AlreadyClaimedError(
                        f"Scheduled ride {ride_id} was accepted by another driver",
                        details={"ride_id": ride_id},
                    )
                accepted = repo.get(ride_id, refresh=True)

            logger.info("Scheduled ride accepted")
        return accepted  # type: ignore[return-value]

    def release(self, ride_id: str, driver_id: str) -> ScheduledRide:
        """The assigned driver backs out; the ride is listed again."""
        return self._move(
            ride_id,
            ScheduledRideStatus.SCHEDULED,
            acting_driver_id=driver_id,
            accepted_at=None,
            **driver_columns(None),
        )

    def cancel(self, ride_id: str, now: datetime | None = None) -> ScheduledRide:
        """Passenger cancellation from ``scheduled`` or ``accepted``."""
        now = now or utc_now()
        return self._move(
            ride_id,
            ScheduledRideStatus.CANCELLED,
            cancelled_at=now,
            **driver_columns(None),
        )

    def complete(
        self,
        ride_id: str,
        driver_id: str,
        now: datetime | None = None,
    ) -> ScheduledRide:
        now = now or utc_now()
        return self._move(
            ride_id,
            ScheduledRideStatus.COMPLETED,
            acting_driver_id=driver_id,
            completed_at=now,
        )

    def get_ride(self, ride_id: str) -> ScheduledRide:
        with self._session_factory() as session, transaction(session):
            return self._require(ScheduledRideRepository(session), ride_id)

    def upcoming_rides(self, passenger_id: str, now: datetime | None = None) -> list[ScheduledRide]:
        now = now or utc_now()
        with self._session_factory() as session, transaction(session):
            return ScheduledRideRepository(session).list_upcoming(passenger_id, now)

    def past_rides(self, passenger_id: str, now: datetime | None = None) -> list[ScheduledRide]:
        now = now or utc_now()
        with self._session_factory() as session, transaction(session):
            return ScheduledRideRepository(session).list_past(passenger_id, now)

    def driver_rides(self, driver_id: str) -> list[ScheduledRide]:
        with self._session_factory() as session, transaction(session):
            return ScheduledRideRepository(session).list_by_driver(driver_id)

    def _move(
        self,
        ride_id: str,
        new_status: ScheduledRideStatus,
        acting_driver_id: str | None = None,
        **values: Any,
    ) -> ScheduledRide:
        driver_id = acting_driver_id
        with log_context(ride_id=ride_id, driver_id=driver_id):
            with self._session_factory() as session, transaction(session):
                repo = ScheduledRideRepository(session)
                current = self._require(repo, ride_id)
                if driver_id is not None and current.driver_id != driver_id:
                    raise InvariantViolationError(
                        f"Driver {driver_id} is not assigned to scheduled ride {ride_id}",
                        details={"ride_id": ride_id, "assigned_driver_id": current.driver_id},
                    )

                from_status = current.status
                current.transition_to(new_status)

                applied = repo.transition(
                    ride_id,
                    new_status,
                    expected={from_status},
                    assigned_driver_id=driver_id,
                    **values,
                )
                if not applied:
                    raise InvariantViolationError(
                        f"Scheduled ride {ride_id} changed before it could move to "
                        f"{new_status.value}",
                        details={"ride_id": ride_id},
                    )
                updated = repo.get(ride_id, refresh=True)

            logger.info("Scheduled ride %s -> %s", from_status.value, new_status.value)
        return updated  # type: ignore[return-value]

    def _require(self, repo: ScheduledRideRepository, ride_id: str) -> ScheduledRide:
        ride = repo.get(ride_id)
        if ride is None:
            raise NotFoundError(
                f"Scheduled ride {ride_id} not found",
                details={"ride_id": ride_id},
            )
        return ride
