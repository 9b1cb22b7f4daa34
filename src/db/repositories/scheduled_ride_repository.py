"""Scheduled ride repository."""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from scheduled_ride import ScheduledRide as ScheduledRideDomain
from scheduled_ride import ScheduledRideStatus
from trip import DriverProfile, Location

from ..schema import ScheduledRide
from ..utils import utc_now
from .trip_repository import driver_columns

PAST_VALUES = {ScheduledRideStatus.COMPLETED.value, ScheduledRideStatus.CANCELLED.value}
UPCOMING_VALUES = {ScheduledRideStatus.SCHEDULED.value, ScheduledRideStatus.ACCEPTED.value}


class ScheduledRideRepository:
    """Repository for future-dated rides."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, ride: ScheduledRideDomain) -> ScheduledRideDomain:
        now = utc_now()
        row = ScheduledRide(
            ride_id=ride.ride_id,
            passenger_id=ride.passenger_id,
            passenger_name=ride.passenger_name,
            passenger_phone=ride.passenger_phone,
            status=ride.status.value,
            pickup_location=ride.pickup.label,
            pickup_latitude=ride.pickup.latitude,
            pickup_longitude=ride.pickup.longitude,
            dropoff_location=ride.dropoff.label,
            dropoff_latitude=ride.dropoff.latitude,
            dropoff_longitude=ride.dropoff.longitude,
            scheduled_at=ride.scheduled_at,
            notes=ride.notes,
            created_at=ride.created_at or now,
            updated_at=now,
            **driver_columns(ride.driver),
        )
        self.session.add(row)
        self.session.flush()
        return self._to_domain(row)

    def get(self, ride_id: str, refresh: bool = False) -> ScheduledRideDomain | None:
        row = self.session.get(ScheduledRide, ride_id, populate_existing=refresh)
        if row is None:
            return None
        return self._to_domain(row)

    def list_available(self, now: datetime) -> list[ScheduledRideDomain]:
        """Unclaimed rides that have not started yet, soonest first."""
        stmt = (
            select(ScheduledRide)
            .where(
                ScheduledRide.status == ScheduledRideStatus.SCHEDULED.value,
                ScheduledRide.driver_id.is_(None),
                ScheduledRide.scheduled_at >= now,
            )
            .order_by(ScheduledRide.scheduled_at.asc())
        )
        return [self._to_domain(r) for r in self.session.execute(stmt).scalars().all()]

    def try_assign_driver(self, ride_id: str, driver: DriverProfile, now: datetime) -> bool:
        """Conditional claim; True only for the caller whose UPDATE landed."""
        stmt = (
            update(ScheduledRide)
            .where(
                ScheduledRide.ride_id == ride_id,
                ScheduledRide.driver_id.is_(None),
                ScheduledRide.status == ScheduledRideStatus.SCHEDULED.value,
            )
            .values(
                status=ScheduledRideStatus.ACCEPTED.value,
                accepted_at=now,
                updated_at=now,
                **driver_columns(driver),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined, no-any-return]

    def transition(
        self,
        ride_id: str,
        new_status: ScheduledRideStatus,
        expected: Iterable[ScheduledRideStatus],
        assigned_driver_id: str | None = None,
        **values: Any,
    ) -> bool:
        """Status-guarded write, optionally scoped to the assigned driver."""
        conditions = [
            ScheduledRide.ride_id == ride_id,
            ScheduledRide.status.in_([s.value for s in expected]),
        ]
        if assigned_driver_id is not None:
            conditions.append(ScheduledRide.driver_id == assigned_driver_id)

        stmt = (
            update(ScheduledRide)
            .where(*conditions)
            .values(status=new_status.value, updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined, no-any-return]

    def list_upcoming(self, passenger_id: str, now: datetime) -> list[ScheduledRideDomain]:
        stmt = (
            select(ScheduledRide)
            .where(
                ScheduledRide.passenger_id == passenger_id,
                ScheduledRide.status.in_(UPCOMING_VALUES),
                ScheduledRide.scheduled_at >= now,
            )
            .order_by(ScheduledRide.scheduled_at.asc())
        )
        return [self._to_domain(r) for r in self.session.execute(stmt).scalars().all()]

    def list_past(self, passenger_id: str, now: datetime) -> list[ScheduledRideDomain]:
        """Finished rides plus scheduled ones whose time has passed, newest first."""
        stmt = (
            select(ScheduledRide)
            .where(
                ScheduledRide.passenger_id == passenger_id,
                or_(
                    ScheduledRide.status.in_(PAST_VALUES),
                    and_(
                        ScheduledRide.status == ScheduledRideStatus.SCHEDULED.value,
                        ScheduledRide.scheduled_at < now,
                    ),
                ),
            )
            .order_by(ScheduledRide.scheduled_at.desc())
        )
        return [self._to_domain(r) for r in self.session.execute(stmt).scalars().all()]

    def list_by_driver(self, driver_id: str) -> list[ScheduledRideDomain]:
        stmt = (
            select(ScheduledRide)
            .where(ScheduledRide.driver_id == driver_id)
            .order_by(ScheduledRide.scheduled_at.asc())
        )
        return [self._to_domain(r) for r in self.session.execute(stmt).scalars().all()]

    def _to_domain(self, ride: ScheduledRide) -> ScheduledRideDomain:
        driver = None
        if ride.driver_id is not None:
            driver = DriverProfile(
                driver_id=ride.driver_id,
                name=ride.driver_name,
                phone=ride.driver_phone,
                photo_url=ride.driver_photo,
                tricycle_plate=ride.tricycle_plate,
            )

        return ScheduledRideDomain(
            ride_id=ride.ride_id,
            passenger_id=ride.passenger_id,
            passenger_name=ride.passenger_name,
            passenger_phone=ride.passenger_phone,
            driver=driver,
            status=ScheduledRideStatus(ride.status),
            pickup=Location(
                label=ride.pickup_location,
                latitude=ride.pickup_latitude,
                longitude=ride.pickup_longitude,
            ),
            dropoff=Location(
                label=ride.dropoff_location,
                latitude=ride.dropoff_latitude,
                longitude=ride.dropoff_longitude,
            ),
            scheduled_at=ride.scheduled_at,
            notes=ride.notes,
            created_at=ride.created_at,
            accepted_at=ride.accepted_at,
            completed_at=ride.completed_at,
            cancelled_at=ride.cancelled_at,
        )
