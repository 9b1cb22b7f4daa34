"""Trip repository: CRUD plus the status-guarded writes the lifecycle relies on."""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from trip import (
    CLAIMABLE_STATUSES,
    TERMINAL_STATUSES,
    DiscountType,
    DriverProfile,
    Location,
    RideMode,
    TripStatus,
)
from trip import Trip as TripDomain

from ..schema import Trip
from ..utils import utc_now

TERMINAL_VALUES = {s.value for s in TERMINAL_STATUSES}
CLAIMABLE_VALUES = {s.value for s in CLAIMABLE_STATUSES}


def driver_columns(driver: DriverProfile | None) -> dict[str, Any]:
    """Flatten a driver profile into the denormalised trip columns."""
    if driver is None:
        return {
            "driver_id": None,
            "driver_name": None,
            "driver_phone": None,
            "driver_photo": None,
            "tricycle_plate": None,
        }
    return {
        "driver_id": driver.driver_id,
        "driver_name": driver.name,
        "driver_phone": driver.phone,
        "driver_photo": driver.photo_url,
        "tricycle_plate": driver.tricycle_plate,
    }


class TripRepository:
    """Repository for trip records."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, trip: TripDomain) -> TripDomain:
        """Insert a new trip record."""
        now = utc_now()
        row = Trip(
            trip_id=trip.trip_id,
            passenger_id=trip.passenger_id,
            passenger_name=trip.passenger_name,
            passenger_phone=trip.passenger_phone,
            preferred_driver_id=trip.preferred_driver_id,
            status=trip.status.value,
            pickup_location=trip.pickup.label,
            pickup_latitude=trip.pickup.latitude,
            pickup_longitude=trip.pickup.longitude,
            dropoff_location=trip.dropoff.label,
            dropoff_latitude=trip.dropoff.latitude,
            dropoff_longitude=trip.dropoff.longitude,
            distance_km=trip.distance_km,
            base_fare=trip.base_fare,
            discount_amount=trip.discount_amount,
            discount_type=trip.discount_type.value if trip.discount_type else None,
            final_fare=trip.final_fare,
            ride_mode=trip.ride_mode.value,
            errand_notes=trip.errand_notes,
            payment_method=trip.payment_method,
            payment_status=trip.payment_status,
            created_at=trip.created_at or now,
            updated_at=now,
            **driver_columns(trip.driver),
        )
        self.session.add(row)
        self.session.flush()
        return self._to_domain(row)

    def get(self, trip_id: str, refresh: bool = False) -> TripDomain | None:
        """Get trip by ID, returning domain model.

        ``refresh`` bypasses the identity map so rows changed by bulk
        UPDATE statements in this session are re-read.
        """
        row = self.session.get(Trip, trip_id, populate_existing=refresh)
        if row is None:
            return None
        return self._to_domain(row)

    def list_candidates(self, created_after: datetime) -> list[TripDomain]:
        """Unclaimed trips newer than ``created_after``, oldest first."""
        stmt = (
            select(Trip)
            .where(
                Trip.status.in_(CLAIMABLE_VALUES),
                Trip.driver_id.is_(None),
                Trip.created_at >= created_after,
            )
            .order_by(Trip.created_at.asc())
        )
        result = self.session.execute(stmt)
        return [self._to_domain(t) for t in result.scalars().all()]

    def try_assign_driver(self, trip_id: str, driver: DriverProfile, now: datetime) -> bool:
        """Claim a trip for ``driver`` in a single conditional UPDATE.

        The write only lands while the trip is still unassigned and in a
        claimable status, so at most one concurrent caller sees True.
        """
        stmt = (
            update(Trip)
            .where(
                Trip.trip_id == trip_id,
                Trip.driver_id.is_(None),
                Trip.status.in_(CLAIMABLE_VALUES),
            )
            .values(
                status=TripStatus.DRIVER_ACCEPTED.value,
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
        trip_id: str,
        new_status: TripStatus,
        expected: Iterable[TripStatus],
        assigned_driver_id: str | None = None,
        **values: Any,
    ) -> bool:
        """Move a trip to ``new_status`` only from one of ``expected``.

        When ``assigned_driver_id`` is given the row must also belong to that driver.
        Returns False when no row matched the guard.
        """
        conditions = [
            Trip.trip_id == trip_id,
            Trip.status.in_([s.value for s in expected]),
        ]
        if assigned_driver_id is not None:
            conditions.append(Trip.driver_id == assigned_driver_id)

        stmt = (
            update(Trip)
            .where(*conditions)
            .values(status=new_status.value, updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined, no-any-return]

    def update_fields(
        self,
        trip_id: str,
        expected: Iterable[TripStatus],
        **values: Any,
    ) -> bool:
        """Write non-status fields while the trip is in one of ``expected``."""
        stmt = (
            update(Trip)
            .where(
                Trip.trip_id == trip_id,
                Trip.status.in_([s.value for s in expected]),
            )
            .values(updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined, no-any-return]

    def list_by_passenger(self, passenger_id: str, limit: int | None = None) -> list[TripDomain]:
        """List trips by passenger ID, newest first."""
        stmt = (
            select(Trip)
            .where(Trip.passenger_id == passenger_id)
            .order_by(Trip.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = self.session.execute(stmt)
        return [self._to_domain(t) for t in result.scalars().all()]

    def list_by_driver(self, driver_id: str, limit: int | None = None) -> list[TripDomain]:
        """List trips by driver ID, newest first."""
        stmt = (
            select(Trip)
            .where(Trip.driver_id == driver_id)
            .order_by(Trip.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = self.session.execute(stmt)
        return [self._to_domain(t) for t in result.scalars().all()]

    def get_active_for_passenger(self, passenger_id: str) -> TripDomain | None:
        stmt = (
            select(Trip)
            .where(
                Trip.passenger_id == passenger_id,
                Trip.status.notin_(TERMINAL_VALUES),
            )
            .order_by(Trip.created_at.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).scalars().first()
        return self._to_domain(row) if row else None

    def get_active_for_driver(self, driver_id: str) -> TripDomain | None:
        stmt = (
            select(Trip)
            .where(
                Trip.driver_id == driver_id,
                Trip.status.notin_(TERMINAL_VALUES),
            )
            .order_by(Trip.created_at.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).scalars().first()
        return self._to_domain(row) if row else None

    def list_completed_pickups(self) -> list[tuple[float, float, datetime]]:
        """Pickup coordinates and request time of every completed trip."""
        stmt = select(Trip.pickup_latitude, Trip.pickup_longitude, Trip.created_at).where(
            Trip.status == TripStatus.COMPLETED.value,
            Trip.pickup_latitude.is_not(None),
            Trip.pickup_longitude.is_not(None),
        )
        return [(lat, lon, created) for lat, lon, created in self.session.execute(stmt).all()]

    def driver_rating_summary(self, driver_id: str) -> tuple[int, int, float]:
        """Completed ride count, rating count and mean passenger rating."""
        stmt = select(
            func.count(Trip.trip_id),
            func.count(Trip.passenger_rating),
            func.avg(Trip.passenger_rating),
        ).where(
            Trip.driver_id == driver_id,
            Trip.status == TripStatus.COMPLETED.value,
        )
        total, rated, average = self.session.execute(stmt).one()
        return int(total or 0), int(rated or 0), float(average or 0.0)

    def _to_domain(self, trip: Trip) -> TripDomain:
        """Convert ORM model to domain model."""
        driver = None
        if trip.driver_id is not None:
            driver = DriverProfile(
                driver_id=trip.driver_id,
                name=trip.driver_name,
                phone=trip.driver_phone,
                photo_url=trip.driver_photo,
                tricycle_plate=trip.tricycle_plate,
            )

        return TripDomain(
            trip_id=trip.trip_id,
            passenger_id=trip.passenger_id,
            passenger_name=trip.passenger_name,
            passenger_phone=trip.passenger_phone,
            driver=driver,
            preferred_driver_id=trip.preferred_driver_id,
            status=TripStatus(trip.status),
            pickup=Location(
                label=trip.pickup_location,
                latitude=trip.pickup_latitude,
                longitude=trip.pickup_longitude,
            ),
            dropoff=Location(
                label=trip.dropoff_location,
                latitude=trip.dropoff_latitude,
                longitude=trip.dropoff_longitude,
            ),
            distance_km=trip.distance_km,
            base_fare=trip.base_fare,
            discount_amount=trip.discount_amount or 0,
            discount_type=DiscountType(trip.discount_type) if trip.discount_type else None,
            ride_mode=RideMode(trip.ride_mode),
            errand_notes=trip.errand_notes,
            payment_method=trip.payment_method,  # type: ignore[arg-type]
            payment_status=trip.payment_status,  # type: ignore[arg-type]
            passenger_rating=trip.passenger_rating,
            passenger_feedback=trip.passenger_feedback,
            driver_rating=trip.driver_rating,
            driver_feedback=trip.driver_feedback,
            cancelled_by=trip.cancelled_by,  # type: ignore[arg-type]
            cancellation_reason=trip.cancellation_reason,
            created_at=trip.created_at,
            accepted_at=trip.accepted_at,
            arrived_at=trip.arrived_at,
            started_at=trip.started_at,
            completed_at=trip.completed_at,
            cancelled_at=trip.cancelled_at,
        )
