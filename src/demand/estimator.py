"""Advisory driver positioning from zone peak hours and completed-trip history.

Nothing here changes dispatch. Suggestions only tell idle drivers where
demand is likely to outrun supply in the current local hour.
"""

import logging
import math
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal
from zoneinfo import ZoneInfo

import h3
from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import ValidationError
from db.repositories.trip_repository import TripRepository
from db.transaction import transaction
from db.utils import utc_now
from dispatch.driver_location_index import DriverLocationProvider
from geo.distance import is_within_radius_km
from settings import DemandSettings

from .zones import DEFAULT_ZONES, DemandZone, ZoneType

logger = logging.getLogger(__name__)

Priority = Literal["high", "medium", "low"]
_PRIORITY_ORDER: dict[str, int] = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class ZoneForecast:
    zone: DemandZone
    expected_demand: float
    historical_count: int


@dataclass(frozen=True)
class PositioningSuggestion:
    zone_id: str
    zone_name: str
    latitude: float
    longitude: float
    suggested_drivers: int
    current_drivers: int
    shortfall: int
    priority: Priority
    reason: str


class DemandEstimator:
    """Ranks peak zones and suggests where idle drivers should wait."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Any,
        location_provider: DriverLocationProvider | None = None,
        settings: DemandSettings | None = None,
        zones: tuple[DemandZone, ...] = DEFAULT_ZONES,
    ):
        self._session_factory = session_factory
        self._locations = location_provider
        self._settings = settings or DemandSettings()
        self._zones: list[DemandZone] = list(zones)
        self._tz = ZoneInfo(self._settings.timezone)

    @property
    def zones(self) -> list[DemandZone]:
        return list(self._zones)

    def add_zone(
        self,
        name: str,
        latitude: float,
        longitude: float,
        radius_km: float,
        peak_hours: tuple[int, ...],
        average_demand: float,
        zone_type: ZoneType = "other",
    ) -> DemandZone:
        if radius_km <= 0 or average_demand < 0:
            raise ValidationError(
                "Zone radius must be positive and demand non-negative",
                details={"name": name},
            )
        if any(not 0 <= h <= 23 for h in peak_hours):
            raise ValidationError("Peak hours must be 0-23", details={"name": name})

        zone = DemandZone(
            zone_id=f"zone_{uuid.uuid4().hex[:9]}",
            name=name,
            zone_type=zone_type,
            latitude=latitude,
            longitude=longitude,
            radius_km=radius_km,
            peak_hours=tuple(peak_hours),
            average_demand=average_demand,
        )
        self._zones.append(zone)
        return zone

    def historical_demand(self) -> Counter[tuple[str, int]]:
        """Completed-trip pickups bucketed by (h3 cell, local request hour)."""
        with self._session_factory() as session, transaction(session):
            pickups = TripRepository(session).list_completed_pickups()

        buckets: Counter[tuple[str, int]] = Counter()
        for lat, lon, created_at in pickups:
            cell = h3.latlng_to_cell(lat, lon, self._settings.h3_resolution)
            buckets[(cell, created_at.astimezone(self._tz).hour)] += 1
        return buckets

    def predict(self, now: datetime | None = None) -> list[ZoneForecast]:
        """Zones in their peak hour, highest expected demand first.

        Zones with history in this hour blend the static average with the
        observed count: ``(average + count) / 2``.
        """
        now = now or utc_now()
        hour = now.astimezone(self._tz).hour
        peak_zones = [z for z in self._zones if z.is_peak(hour)]
        if not peak_zones:
            return []

        history = self.historical_demand()
        cell_centers = {
            cell: h3.cell_to_latlng(cell) for cell, bucket_hour in history if bucket_hour == hour
        }

        forecasts = []
        for zone in peak_zones:
            count = sum(
                n
                for (cell, bucket_hour), n in history.items()
                if bucket_hour == hour
                and is_within_radius_km(
                    cell_centers[cell][0],
                    cell_centers[cell][1],
                    zone.latitude,
                    zone.longitude,
                    zone.radius_km,
                )
            )
            expected = (zone.average_demand + count) / 2 if count > 0 else zone.average_demand
            forecasts.append(ZoneForecast(zone=zone, expected_demand=expected, historical_count=count))

        forecasts.sort(key=lambda f: f.expected_demand, reverse=True)
        return forecasts

    def suggest(self, now: datetime | None = None) -> list[PositioningSuggestion]:
        """Positioning suggestions for zones short of drivers, most urgent first."""
        s = self._settings
        suggestions = []
        for forecast in self.predict(now):
            zone = forecast.zone
            current = self._drivers_in(zone)
            target = math.ceil(forecast.expected_demand / s.bookings_per_driver)
            shortfall = max(0, target - current)
            if shortfall == 0:
                continue

            priority: Priority
            if shortfall >= s.high_priority_shortfall:
                priority = "high"
            elif shortfall >= s.medium_priority_shortfall:
                priority = "medium"
            else:
                priority = "low"

            suggestions.append(
                PositioningSuggestion(
                    zone_id=zone.zone_id,
                    zone_name=zone.name,
                    latitude=zone.latitude,
                    longitude=zone.longitude,
                    suggested_drivers=target,
                    current_drivers=current,
                    shortfall=shortfall,
                    priority=priority,
                    reason=(
                        f"High demand expected at {zone.name} ({zone.zone_type}) "
                        "during current peak hours"
                    ),
                )
            )

        suggestions.sort(key=lambda x: _PRIORITY_ORDER[x.priority])
        logger.debug("Generated %d positioning suggestions", len(suggestions))
        return suggestions

    def _drivers_in(self, zone: DemandZone) -> int:
        if self._locations is None:
            return 0
        return len(self._locations.find_within(zone.latitude, zone.longitude, zone.radius_km))
