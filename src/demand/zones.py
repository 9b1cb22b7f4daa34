"""High-demand zones around Lopez town proper."""

from dataclasses import dataclass
from typing import Literal

ZoneType = Literal["school", "market", "terminal", "hospital", "church", "other"]


@dataclass(frozen=True)
class DemandZone:
    zone_id: str
    name: str
    zone_type: ZoneType
    latitude: float
    longitude: float
    radius_km: float
    peak_hours: tuple[int, ...]  # local hours, 0-23
    average_demand: float  # bookings per peak hour

    def is_peak(self, hour: int) -> bool:
        return hour in self.peak_hours


DEFAULT_ZONES: tuple[DemandZone, ...] = (
    DemandZone(
        zone_id="school_1",
        name="Lopez Central Elementary School",
        zone_type="school",
        latitude=13.8844,
        longitude=122.2603,
        radius_km=0.5,
        peak_hours=(6, 7, 12, 13, 16, 17),
        average_demand=15,
    ),
    DemandZone(
        zone_id="market_1",
        name="Lopez Public Market",
        zone_type="market",
        latitude=13.8840,
        longitude=122.2600,
        radius_km=0.3,
        peak_hours=(7, 8, 9, 10, 15, 16, 17),
        average_demand=20,
    ),
    DemandZone(
        zone_id="terminal_1",
        name="Lopez Terminal",
        zone_type="terminal",
        latitude=13.8845,
        longitude=122.2605,
        radius_km=0.4,
        peak_hours=(5, 6, 7, 8, 17, 18, 19),
        average_demand=25,
    ),
)
