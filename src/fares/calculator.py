"""Fare quoting for tricycle trips.

Pricing paths, tried in order:

1. The fixed Lopez fare matrix (exact fares, no band).
2. On a matrix miss, the flat minimum fare (no discount, no surcharge),
   unless distance pricing is configured and a distance is known.
3. The active barangay rate: base + distance x per-km, with a +/- variance
   band clamped to the minimum fare.
4. A hard-coded fallback used when no rate can be read.

Senior and PWD discounts never stack; the senior discount wins. Errand mode
adds a surcharge before the discount is taken. All amounts are whole pesos,
rounded half-up.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal
from zoneinfo import ZoneInfo

from core.exceptions import ValidationError
from db.utils import as_utc
from settings import FareSettings
from trip import DiscountType

from .matrix import FareRoute, find_route, normalize_destination
from .rates import RateSource

logger = logging.getLogger(__name__)

FareSource = Literal["matrix", "floor", "barangay_rate", "default"]


@dataclass(frozen=True)
class FareQuote:
    """Priced trip. ``min_fare == max_fare`` for matrix fares."""

    min_fare: int
    max_fare: int
    base_fare: int
    final_fare: int
    discount_amount: int | None
    discount_type: DiscountType | None
    errand_surcharge: int
    destination: str
    found: bool
    source: FareSource
    route: str | None = None


def round_half_up(value: float) -> int:
    """Round to whole pesos with halves going up (12.5 -> 13)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_distance_km(distance_km: float | None) -> float | None:
    """Reject distances that cannot be priced.

    Raises:
        ValidationError: NaN, infinite or negative distance.
    """
    if distance_km is None:
        return None
    if math.isnan(distance_km) or math.isinf(distance_km):
        raise ValidationError(
            "Distance must be a finite number",
            details={"distance_km": distance_km},
        )
    if distance_km < 0:
        raise ValidationError(
            "Distance must not be negative",
            details={"distance_km": distance_km},
        )
    return float(distance_km)


def is_night_trip(at: datetime, settings: FareSettings | None = None) -> bool:
    """Whether ``at`` falls inside the local night-surcharge window.

    Naive datetimes are read as UTC, like everywhere else in the store.
    """
    settings = settings or FareSettings()
    local = as_utc(at).astimezone(ZoneInfo(settings.timezone))
    start, end = settings.night_start_hour, settings.night_end_hour
    if start <= end:
        return start <= local.hour < end
    return local.hour >= start or local.hour < end


def _discount_type(has_senior: bool, has_pwd: bool) -> DiscountType | None:
    if has_senior:
        return DiscountType.SENIOR
    if has_pwd:
        return DiscountType.PWD
    return None


class FareCalculator:
    """Quotes fares from the matrix, the barangay rate or the fallback formula.

    ``quote`` never raises: unreadable rates degrade to the fallback formula
    and unknown destinations come back with ``found=False``.
    """

    def __init__(
        self,
        settings: FareSettings | None = None,
        rate_source: RateSource | None = None,
    ):
        self._settings = settings or FareSettings()
        self._rate_source = rate_source

    @property
    def settings(self) -> FareSettings:
        return self._settings

    def quote(
        self,
        destination: str,
        distance_km: float | None = None,
        is_night_trip: bool = False,
        has_senior_discount: bool = False,
        has_pwd_discount: bool = False,
        is_errand_mode: bool = False,
        barangay: str | None = None,
    ) -> FareQuote:
        discount_type = _discount_type(has_senior_discount, has_pwd_discount)
        distance = self._usable_distance(distance_km)

        if self._settings.matrix_enabled:
            route = find_route(destination)
            if route is not None:
                return self._price_route(route, discount_type, is_errand_mode)
            logger.warning(
                "No matrix fare for destination %r (normalized %r)",
                destination,
                normalize_destination(destination),
            )
            use_distance = self._settings.unmatched_strategy == "distance"
        else:
            use_distance = True

        if use_distance and distance is not None:
            return self._price_by_distance(
                destination=normalize_destination(destination),
                distance_km=distance,
                is_night_trip=is_night_trip,
                discount_type=discount_type,
                is_errand_mode=is_errand_mode,
                barangay=barangay or self._settings.default_barangay,
            )

        return self._price_floor(normalize_destination(destination))

    def _usable_distance(self, distance_km: float | None) -> float | None:
        try:
            return validate_distance_km(distance_km)
        except ValidationError:
            logger.warning("Ignoring unusable distance %r for fare quote", distance_km)
            return None

    def _price_floor(self, destination: str) -> FareQuote:
        # Discount and errand flags do not apply to the flat minimum
        floor = self._settings.minimum_fare
        return FareQuote(
            min_fare=floor,
            max_fare=floor,
            base_fare=floor,
            final_fare=floor,
            discount_amount=None,
            discount_type=None,
            errand_surcharge=0,
            destination=destination,
            found=False,
            source="floor",
        )

    def _price_route(
        self,
        route: FareRoute,
        discount_type: DiscountType | None,
        is_errand_mode: bool,
    ) -> FareQuote:
        regular = route.regular_fare
        discounted = route.discounted_fare
        surcharge = 0
        if is_errand_mode:
            rate = self._settings.errand_surcharge_rate
            surcharge = round_half_up(regular * rate)
            regular += surcharge
            discounted += round_half_up(discounted * rate)

        final = discounted if discount_type else regular
        discount = regular - final

        return FareQuote(
            min_fare=final,
            max_fare=final,
            base_fare=regular,
            final_fare=final,
            discount_amount=discount or None,
            discount_type=discount_type,
            errand_surcharge=surcharge,
            destination=route.destination,
            found=True,
            source="matrix",
            route=route.route,
        )

    def _price_by_distance(
        self,
        destination: str,
        distance_km: float,
        is_night_trip: bool,
        discount_type: DiscountType | None,
        is_errand_mode: bool,
        barangay: str,
    ) -> FareQuote:
        rate = None
        if self._rate_source is not None:
            try:
                rate = self._rate_source.get_active_rate(
                    barangay, default_barangay=self._settings.default_barangay
                )
            except Exception:
                logger.warning(
                    "Barangay rate lookup failed for %s; using fallback fare",
                    barangay,
                    exc_info=True,
                )
                rate = None

        if rate is None:
            return self._price_fallback(destination, distance_km, discount_type, is_errand_mode)

        s = self._settings
        night = rate.night_surcharge if is_night_trip else 0
        pre = rate.base_fare + distance_km * rate.per_kilometer + night
        surcharge = round_half_up(pre * s.errand_surcharge_rate) if is_errand_mode else 0
        base = max(round_half_up(pre) + surcharge, rate.minimum_fare)
        discount = round_half_up(base * s.discount_rate) if discount_type else 0
        final = base - discount

        floor = rate.minimum_fare
        if discount_type:
            floor -= round_half_up(rate.minimum_fare * s.discount_rate)

        return FareQuote(
            min_fare=max(round_half_up(final * (1 - s.variance)), floor),
            max_fare=max(round_half_up(final * (1 + s.variance)), floor),
            base_fare=base,
            final_fare=final,
            discount_amount=discount or None,
            discount_type=discount_type,
            errand_surcharge=surcharge,
            destination=destination,
            found=False,
            source="barangay_rate",
        )

    def _price_fallback(
        self,
        destination: str,
        distance_km: float,
        discount_type: DiscountType | None,
        is_errand_mode: bool,
    ) -> FareQuote:
        s = self._settings
        per_km_mid = (s.fallback_per_km_min + s.fallback_per_km_max) / 2
        pre_min = s.fallback_base_fare + distance_km * s.fallback_per_km_min
        pre_base = s.fallback_base_fare + distance_km * per_km_mid
        pre_max = s.fallback_base_fare + distance_km * s.fallback_per_km_max

        factor = 1.0
        surcharge = 0
        if is_errand_mode:
            factor *= 1 + s.errand_surcharge_rate
            surcharge = round_half_up(pre_base * s.errand_surcharge_rate)
        base = round_half_up(pre_base) + surcharge

        discount = 0
        if discount_type:
            factor *= 1 - s.discount_rate
            discount = round_half_up(base * s.discount_rate)

        return FareQuote(
            min_fare=round_half_up(pre_min * factor),
            max_fare=round_half_up(pre_max * factor),
            base_fare=base,
            final_fare=base - discount,
            discount_amount=discount or None,
            discount_type=discount_type,
            errand_surcharge=surcharge,
            destination=destination,
            found=False,
            source="default",
        )
