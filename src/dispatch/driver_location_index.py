import math
import threading
from dataclasses import dataclass
from typing import Literal, Protocol

import h3

from geo.distance import haversine_distance_km

DriverStatus = Literal["available", "on_ride", "offline"]
ONLINE_STATUSES: frozenset[str] = frozenset({"available", "on_ride"})


@dataclass(frozen=True)
class DriverLocation:
    driver_id: str
    latitude: float
    longitude: float
    status: DriverStatus


class DriverLocationProvider(Protocol):
    """Source of live driver positions used by dispatch and demand estimation."""

    def upsert(self, driver_id: str, lat: float, lon: float, status: DriverStatus) -> None: ...

    def remove(self, driver_id: str) -> None: ...

    def set_status(self, driver_id: str, status: DriverStatus) -> None: ...

    def list_online(self) -> list[DriverLocation]: ...

    def find_within(
        self,
        lat: float,
        lon: float,
        radius_km: float,
        statuses: frozenset[str] = ONLINE_STATUSES,
    ) -> list[tuple[DriverLocation, float]]: ...


class DriverLocationIndex:
    """Spatial index for driver locations using H3 hexagonal cells.

    Thread-safe: every method takes the index lock. Each driver's entry is
    written only by that driver's own client.
    """

    def __init__(self, h3_resolution: int = 10):
        self._h3_resolution = h3_resolution
        self._edge_km = h3.average_hexagon_edge_length(h3_resolution, unit="km")
        self._h3_cells: dict[str, set[str]] = {}
        self._drivers: dict[str, tuple[DriverLocation, str]] = {}
        self._lock = threading.Lock()

    def upsert(self, driver_id: str, lat: float, lon: float, status: DriverStatus) -> None:
        with self._lock:
            new_cell = self._get_h3_cell(lat, lon)
            existing = self._drivers.get(driver_id)
            if existing is not None:
                _, old_cell = existing
                if old_cell != new_cell:
                    self._discard_from_cell(driver_id, old_cell)

            self._h3_cells.setdefault(new_cell, set()).add(driver_id)
            self._drivers[driver_id] = (DriverLocation(driver_id, lat, lon, status), new_cell)

    def set_status(self, driver_id: str, status: DriverStatus) -> None:
        with self._lock:
            existing = self._drivers.get(driver_id)
            if existing is None:
                return
            location, cell = existing
            self._drivers[driver_id] = (
                DriverLocation(driver_id, location.latitude, location.longitude, status),
                cell,
            )

    def remove(self, driver_id: str) -> None:
        with self._lock:
            existing = self._drivers.pop(driver_id, None)
            if existing is None:
                return
            self._discard_from_cell(driver_id, existing[1])

    def get(self, driver_id: str) -> DriverLocation | None:
        with self._lock:
            existing = self._drivers.get(driver_id)
            return existing[0] if existing else None

    def list_online(self) -> list[DriverLocation]:
        with self._lock:
            return [loc for loc, _ in self._drivers.values() if loc.status in ONLINE_STATUSES]

    def find_within(
        self,
        lat: float,
        lon: float,
        radius_km: float,
        statuses: frozenset[str] = ONLINE_STATUSES,
    ) -> list[tuple[DriverLocation, float]]:
        """Drivers in ``statuses`` within ``radius_km``, nearest first."""
        with self._lock:
            if not self._drivers:
                return []

            center_cell = self._get_h3_cell(lat, lon)
            # One extra ring so drivers near a cell boundary are never missed
            k = max(1, math.ceil(radius_km / self._edge_km) + 1)

            found: list[tuple[DriverLocation, float]] = []
            for cell in h3.grid_disk(center_cell, k):
                for driver_id in self._h3_cells.get(cell, ()):
                    location, _ = self._drivers[driver_id]
                    if location.status not in statuses:
                        continue
                    distance = haversine_distance_km(
                        lat, lon, location.latitude, location.longitude
                    )
                    if distance <= radius_km:
                        found.append((location, distance))

            found.sort(key=lambda x: x[1])
            return found

    def _discard_from_cell(self, driver_id: str, cell: str) -> None:
        members = self._h3_cells.get(cell)
        if members is None:
            return
        members.discard(driver_id)
        if not members:
            del self._h3_cells[cell]

    def _get_h3_cell(self, lat: float, lon: float) -> str:
        return h3.latlng_to_cell(lat, lon, self._h3_resolution)
