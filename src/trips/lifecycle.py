"""Trip lifecycle service: request, progress, cancel, complete and rate trips.

Every status write is guarded by the status the trip was read in, so a late
or out-of-order update is rejected instead of moving a trip backwards.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Literal

from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import InvariantViolationError, NotFoundError, ValidationError
from db.repositories.driver_stats_repository import DriverStatsRepository, DriverStatsSnapshot
from db.repositories.trip_repository import TripRepository, driver_columns
from db.transaction import transaction
from db.utils import utc_now
from dispatch.driver_location_index import DriverLocationProvider
from dispatch_logging import log_trip_context
from fares.calculator import FareCalculator, FareQuote, is_night_trip, validate_distance_km
from trip import Location, RideMode, Trip, TripStatus

logger = logging.getLogger(__name__)

Role = Literal["passenger", "driver"]
CancelledBy = Literal["passenger", "driver", "system"]
PaymentMethod = Literal["cash", "gcash"]

_CANCELLERS = ("passenger", "driver", "system")
_PAYMENT_METHODS = ("cash", "gcash")


class TripLifecycleService:
    """Owns every trip write outside the dispatcher's conditional accept."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Any,
        fare_calculator: FareCalculator | None = None,
        location_index: DriverLocationProvider | None = None,
    ):
        self._session_factory = session_factory
        self._fares = fare_calculator or FareCalculator()
        self._location_index = location_index

    def request_trip(
        self,
        passenger_id: str,
        pickup: Location,
        dropoff: Location,
        distance_km: float | None = None,
        passenger_name: str | None = None,
        passenger_phone: str | None = None,
        preferred_driver_id: str | None = None,
        has_senior_discount: bool = False,
        has_pwd_discount: bool = False,
        is_errand_mode: bool = False,
        errand_notes: str | None = None,
        quote: FareQuote | None = None,
        now: datetime | None = None,
    ) -> Trip:
        """Price and persist a new trip in ``searching``.

        Raises:
            ValidationError: Unusable distance.
        """
        now = now or utc_now()
        distance = validate_distance_km(distance_km)

        if quote is None:
            quote = self._fares.quote(
                dropoff.label,
                distance_km=distance,
                is_night_trip=is_night_trip(now, self._fares.settings),
                has_senior_discount=has_senior_discount,
                has_pwd_discount=has_pwd_discount,
                is_errand_mode=is_errand_mode,
            )

        trip = Trip(
            trip_id=str(uuid.uuid4()),
            passenger_id=passenger_id,
            passenger_name=passenger_name,
            passenger_phone=passenger_phone,
            preferred_driver_id=preferred_driver_id,
            status=TripStatus.SEARCHING,
            pickup=pickup,
            dropoff=dropoff,
            distance_km=distance,
            base_fare=quote.base_fare,
            discount_amount=quote.discount_amount or 0,
            discount_type=quote.discount_type,
            ride_mode=RideMode.ERRAND if is_errand_mode else RideMode.NORMAL,
            errand_notes=errand_notes if is_errand_mode else None,
            created_at=now,
        )

        with log_trip_context(trip.trip_id, passenger_id=passenger_id):
            with self._session_factory() as session, transaction(session):
                created = TripRepository(session).create(trip)
            logger.info(
                "Trip requested: fare %d (%s, found=%s)",
                created.final_fare,
                quote.source,
                quote.found,
            )
        return created

    def mark_arrived(self, trip_id: str, driver_id: str, now: datetime | None = None) -> Trip:
        now = now or utc_now()
        return self._advance(trip_id, TripStatus.ARRIVED, driver_id, arrived_at=now)

    def start_trip(self, trip_id: str, driver_id: str, now: datetime | None = None) -> Trip:
        now = now or utc_now()
        return self._advance(trip_id, TripStatus.IN_PROGRESS, driver_id, started_at=now)

    def complete_trip(
        self,
        trip_id: str,
        driver_id: str,
        payment_method: PaymentMethod = "cash",
        final_fare: int | None = None,
        now: datetime | None = None,
    ) -> Trip:
        """Finish an in-progress trip and settle payment.

        A ``final_fare`` override keeps the recorded discount and moves the
        base fare so that base minus discount still equals the final fare.
        """
        now = now or utc_now()
        if payment_method not in _PAYMENT_METHODS:
            raise ValidationError(
                f"Unsupported payment method: {payment_method}",
                details={"trip_id": trip_id},
            )
        if final_fare is not None and final_fare < 0:
            raise ValidationError(
                "Final fare must not be negative",
                details={"trip_id": trip_id, "final_fare": final_fare},
            )

        def fare_override(current: Trip) -> dict[str, Any]:
            if final_fare is None:
                return {}
            return {
                "final_fare": final_fare,
                "base_fare": final_fare + current.discount_amount,
            }

        completed = self._advance(
            trip_id,
            TripStatus.COMPLETED,
            driver_id,
            extra=fare_override,
            recompute_stats=True,
            completed_at=now,
            payment_method=payment_method,
            payment_status="completed",
        )
        self._release_driver(driver_id)
        return completed

    def cancel_trip(
        self,
        trip_id: str,
        cancelled_by: CancelledBy,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Trip:
        """Cancel from any non-terminal status, clearing the driver assignment."""
        now = now or utc_now()
        if cancelled_by not in _CANCELLERS:
            raise ValidationError(
                f"Unknown canceller: {cancelled_by}",
                details={"trip_id": trip_id},
            )

        with log_trip_context(trip_id, cancelled_by=cancelled_by):
            with self._session_factory() as session, transaction(session):
                repo = TripRepository(session)
                current = self._require(repo, trip_id)
                previous_driver = current.driver_id
                from_status = current.status
                current.transition_to(TripStatus.CANCELLED)

                applied = repo.transition(
                    trip_id,
                    TripStatus.CANCELLED,
                    expected={from_status},
                    cancelled_at=now,
                    cancelled_by=cancelled_by,
                    cancellation_reason=reason,
                    **driver_columns(None),
                )
                if not applied:
                    raise self._lost_write(trip_id, TripStatus.CANCELLED)
                cancelled = repo.get(trip_id, refresh=True)

            logger.info("Trip cancelled (driver was %s): %s", previous_driver, reason)

        if previous_driver is not None:
            self._release_driver(previous_driver)
        return cancelled  # type: ignore[return-value]

    def rate_trip(
        self,
        trip_id: str,
        rating: int,
        feedback: str | None = None,
        rater: Role = "passenger",
    ) -> Trip:
        """Record a 1..5 rating on a completed trip.

        ``rater="passenger"`` rates the driver and refreshes their stats;
        ``rater="driver"`` rates the passenger.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError(
                "Rating must be an integer from 1 to 5",
                details={"trip_id": trip_id, "rating": rating},
            )
        if rater not in ("passenger", "driver"):
            raise ValidationError(f"Unknown rater: {rater}", details={"trip_id": trip_id})

        if rater == "passenger":
            values = {"passenger_rating": rating, "passenger_feedback": feedback}
        else:
            values = {"driver_rating": rating, "driver_feedback": feedback}

        with log_trip_context(trip_id, rater=rater):
            with self._session_factory() as session, transaction(session):
                repo = TripRepository(session)
                if not repo.update_fields(trip_id, expected={TripStatus.COMPLETED}, **values):
                    current = self._require(repo, trip_id)
                    raise InvariantViolationError(
                        f"Only completed trips can be rated (status {current.status.value})",
                        details={"trip_id": trip_id},
                    )
                rated = repo.get(trip_id, refresh=True)
                if rater == "passenger" and rated is not None and rated.driver_id:
                    DriverStatsRepository(session).recompute(rated.driver_id)
            logger.info("Trip rated %d by %s", rating, rater)
        return rated  # type: ignore[return-value]

    def get_trip(self, trip_id: str) -> Trip:
        with self._session_factory() as session, transaction(session):
            return self._require(TripRepository(session), trip_id)

    def get_active_trip(self, user_id: str, role: Role) -> Trip | None:
        """The user's newest non-terminal trip, if any."""
        with self._session_factory() as session, transaction(session):
            repo = TripRepository(session)
            if role == "driver":
                return repo.get_active_for_driver(user_id)
            return repo.get_active_for_passenger(user_id)

    def trip_history(self, user_id: str, role: Role, limit: int | None = None) -> list[Trip]:
        with self._session_factory() as session, transaction(session):
            repo = TripRepository(session)
            if role == "driver":
                return repo.list_by_driver(user_id, limit=limit)
            return repo.list_by_passenger(user_id, limit=limit)

    def driver_stats(self, driver_id: str) -> DriverStatsSnapshot:
        with self._session_factory() as session, transaction(session):
            stats = DriverStatsRepository(session).get(driver_id)
        return stats or DriverStatsSnapshot(driver_id=driver_id)

    def _advance(
        self,
        trip_id: str,
        new_status: TripStatus,
        driver_id: str,
        extra: Any = None,
        recompute_stats: bool = False,
        **values: Any,
    ) -> Trip:
        """Driver-initiated forward step, guarded by the status just read."""
        with log_trip_context(trip_id, driver_id=driver_id):
            with self._session_factory() as session, transaction(session):
                repo = TripRepository(session)
                current = self._require(repo, trip_id)
                if current.driver_id != driver_id:
                    raise InvariantViolationError(
                        f"Driver {driver_id} is not assigned to trip {trip_id}",
                        details={"trip_id": trip_id, "assigned_driver_id": current.driver_id},
                    )

                from_status = current.status
                current.transition_to(new_status)
                if extra is not None:
                    values.update(extra(current))

                applied = repo.transition(
                    trip_id,
                    new_status,
                    expected={from_status},
                    assigned_driver_id=driver_id,
                    **values,
                )
                if not applied:
                    raise self._lost_write(trip_id, new_status)

                if recompute_stats:
                    DriverStatsRepository(session).recompute(driver_id)
                updated = repo.get(trip_id, refresh=True)

            logger.info("Trip %s -> %s", from_status.value, new_status.value)
        return updated  # type: ignore[return-value]

    def _require(self, repo: TripRepository, trip_id: str) -> Trip:
        trip = repo.get(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found", details={"trip_id": trip_id})
        return trip

    def _lost_write(self, trip_id: str, target: TripStatus) -> InvariantViolationError:
        logger.warning("Guarded write to %s matched no row", target.value)
        return InvariantViolationError(
            f"Trip {trip_id} changed before it could move to {target.value}",
            details={"trip_id": trip_id, "requested": target.value},
        )

    def _release_driver(self, driver_id: str) -> None:
        if self._location_index is not None:
            self._location_index.set_status(driver_id, "available")
