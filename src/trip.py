"""Trip state machine and models."""

from datetime import datetime
from enum import Enum
from typing import Literal, Self

from pydantic import BaseModel, Field, model_validator

from core.exceptions import InvariantViolationError


class TripStatus(str, Enum):
    """Trip lifecycle states."""

    PENDING = "pending"
    SEARCHING = "searching"
    DRIVER_FOUND = "driver_found"
    DRIVER_ACCEPTED = "driver_accepted"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RideMode(str, Enum):
    NORMAL = "normal"
    ERRAND = "errand"


class DiscountType(str, Enum):
    SENIOR = "senior"
    PWD = "pwd"


VALID_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.PENDING: {
        TripStatus.SEARCHING,
        TripStatus.DRIVER_ACCEPTED,
        TripStatus.CANCELLED,
    },
    TripStatus.SEARCHING: {
        TripStatus.DRIVER_FOUND,
        TripStatus.DRIVER_ACCEPTED,
        TripStatus.CANCELLED,
    },
    TripStatus.DRIVER_FOUND: {TripStatus.DRIVER_ACCEPTED, TripStatus.CANCELLED},
    TripStatus.DRIVER_ACCEPTED: {
        TripStatus.ARRIVED,
        TripStatus.IN_PROGRESS,
        TripStatus.CANCELLED,
    },
    TripStatus.ARRIVED: {TripStatus.IN_PROGRESS, TripStatus.CANCELLED},
    TripStatus.IN_PROGRESS: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})

# Statuses a driver may still claim through the conditional accept.
CLAIMABLE_STATUSES = frozenset({TripStatus.PENDING, TripStatus.SEARCHING})

# Statuses that carry a driver identity.
DRIVER_ASSIGNED_STATUSES = frozenset(
    {
        TripStatus.DRIVER_ACCEPTED,
        TripStatus.ARRIVED,
        TripStatus.IN_PROGRESS,
        TripStatus.COMPLETED,
    }
)


class Location(BaseModel):
    """Free-text place label with optional coordinates."""

    label: str
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


class DriverProfile(BaseModel):
    """Driver identity plus the display fields copied onto an accepted trip."""

    driver_id: str
    name: str | None = None
    phone: str | None = None
    photo_url: str | None = None
    tricycle_plate: str | None = None


class Trip(BaseModel):
    """Trip with state machine logic."""

    trip_id: str
    passenger_id: str
    passenger_name: str | None = None
    passenger_phone: str | None = None
    driver: DriverProfile | None = None
    preferred_driver_id: str | None = None
    status: TripStatus = Field(default=TripStatus.SEARCHING)
    pickup: Location
    dropoff: Location
    distance_km: float | None = Field(default=None, ge=0.0)
    base_fare: int = Field(ge=0)
    discount_amount: int = Field(default=0, ge=0)
    discount_type: DiscountType | None = None
    final_fare: int = Field(default=0, ge=0)
    ride_mode: RideMode = RideMode.NORMAL
    errand_notes: str | None = None
    payment_method: Literal["cash", "gcash"] | None = None
    payment_status: Literal["pending", "completed"] = "pending"
    passenger_rating: int | None = Field(default=None, ge=1, le=5)
    passenger_feedback: str | None = None
    driver_rating: int | None = Field(default=None, ge=1, le=5)
    driver_feedback: str | None = None
    cancelled_by: Literal["passenger", "driver", "system"] | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    accepted_at: datetime | None = None
    arrived_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @model_validator(mode="after")
    def derive_final_fare(self) -> Self:
        self.final_fare = max(self.base_fare - self.discount_amount, 0)
        return self

    @property
    def driver_id(self) -> str | None:
        return self.driver.driver_id if self.driver else None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_claimable(self) -> bool:
        return self.status in CLAIMABLE_STATUSES and self.driver is None

    def transition_to(self, new_status: TripStatus) -> None:
        """Transition to a new status with validation."""
        if self.status in TERMINAL_STATUSES:
            raise InvariantViolationError(
                f"Cannot transition from terminal status {self.status.value}",
                details={"trip_id": self.trip_id, "requested": new_status.value},
            )

        if new_status not in VALID_TRANSITIONS[self.status]:
            raise InvariantViolationError(
                f"Invalid transition from {self.status.value} to {new_status.value}",
                details={"trip_id": self.trip_id},
            )

        self.status = new_status

        if new_status == TripStatus.CANCELLED:
            self.driver = None

    def cancel(
        self,
        by: Literal["passenger", "driver", "system"],
        reason: str | None = None,
    ) -> None:
        """Cancel the trip with metadata."""
        self.transition_to(TripStatus.CANCELLED)
        self.cancelled_by = by
        self.cancellation_reason = reason

    def has_consistent_driver(self) -> bool:
        """True when driver presence matches the status."""
        return (self.driver is not None) == (self.status in DRIVER_ASSIGNED_STATUSES)
