"""Scheduled (future-dated) ride state machine and model."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from core.exceptions import InvariantViolationError
from trip import DriverProfile, Location


class ScheduledRideStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ACCEPTED -> SCHEDULED is the driver backing out; the ride is listed again.
VALID_SCHEDULED_TRANSITIONS: dict[ScheduledRideStatus, set[ScheduledRideStatus]] = {
    ScheduledRideStatus.SCHEDULED: {
        ScheduledRideStatus.ACCEPTED,
        ScheduledRideStatus.CANCELLED,
    },
    ScheduledRideStatus.ACCEPTED: {
        ScheduledRideStatus.SCHEDULED,
        ScheduledRideStatus.COMPLETED,
        ScheduledRideStatus.CANCELLED,
    },
    ScheduledRideStatus.COMPLETED: set(),
    ScheduledRideStatus.CANCELLED: set(),
}

TERMINAL_SCHEDULED_STATUSES = frozenset(
    {ScheduledRideStatus.COMPLETED, ScheduledRideStatus.CANCELLED}
)


class ScheduledRide(BaseModel):
    """Pre-booked ride keyed by its scheduled pickup time."""

    ride_id: str
    passenger_id: str
    passenger_name: str | None = None
    passenger_phone: str | None = None
    driver: DriverProfile | None = None
    status: ScheduledRideStatus = Field(default=ScheduledRideStatus.SCHEDULED)
    pickup: Location
    dropoff: Location
    scheduled_at: datetime
    notes: str | None = None
    created_at: datetime | None = None
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def driver_id(self) -> str | None:
        return self.driver.driver_id if self.driver else None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SCHEDULED_STATUSES

    def transition_to(self, new_status: ScheduledRideStatus) -> None:
        if self.status in TERMINAL_SCHEDULED_STATUSES:
            raise InvariantViolationError(
                f"Cannot transition from terminal status {self.status.value}",
                details={"ride_id": self.ride_id, "requested": new_status.value},
            )

        if new_status not in VALID_SCHEDULED_TRANSITIONS[self.status]:
            raise InvariantViolationError(
                f"Invalid transition from {self.status.value} to {new_status.value}",
                details={"ride_id": self.ride_id},
            )

        self.status = new_status

        if new_status in (ScheduledRideStatus.SCHEDULED, ScheduledRideStatus.CANCELLED):
            self.driver = None
