"""Driver rating and safety-badge read model."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..schema import DriverStats
from ..utils import utc_now
from .trip_repository import TripRepository

SafetyBadge = Literal["green", "yellow", "red"]

GREEN_MIN_RIDES = 50
GREEN_MIN_RATING = 4.5
RED_MAX_RATING = 3.5


class DriverStatsSnapshot(BaseModel):
    driver_id: str
    total_rides: int = 0
    rating_count: int = 0
    average_rating: float = 0.0
    safety_badge: SafetyBadge = "yellow"
    updated_at: datetime | None = None


def safety_badge_for(total_rides: int, rating_count: int, average_rating: float) -> SafetyBadge:
    """Green for experienced well-rated drivers, red for poorly rated ones."""
    if total_rides >= GREEN_MIN_RIDES and average_rating >= GREEN_MIN_RATING:
        return "green"
    if rating_count > 0 and average_rating < RED_MAX_RATING:
        return "red"
    return "yellow"


class DriverStatsRepository:
    """Recomputes stats from completed trips; never incremented in place."""

    def __init__(self, session: Session):
        self.session = session

    def recompute(self, driver_id: str) -> DriverStatsSnapshot:
        total, rated, average = TripRepository(self.session).driver_rating_summary(driver_id)
        average = round(average, 2)
        badge = safety_badge_for(total, rated, average)

        row = self.session.get(DriverStats, driver_id)
        if row is None:
            row = DriverStats(driver_id=driver_id)
            self.session.add(row)
        row.total_rides = total
        row.rating_count = rated
        row.average_rating = average
        row.safety_badge = badge
        row.updated_at = utc_now()
        self.session.flush()
        return self._to_domain(row)

    def get(self, driver_id: str) -> DriverStatsSnapshot | None:
        row = self.session.get(DriverStats, driver_id)
        if row is None:
            return None
        return self._to_domain(row)

    def _to_domain(self, row: DriverStats) -> DriverStatsSnapshot:
        return DriverStatsSnapshot(
            driver_id=row.driver_id,
            total_rides=row.total_rides or 0,
            rating_count=row.rating_count or 0,
            average_rating=row.average_rating or 0.0,
            safety_badge=row.safety_badge,  # type: ignore[arg-type]
            updated_at=row.updated_at,
        )
