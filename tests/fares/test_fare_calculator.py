"""Tests for fare quoting across matrix, barangay-rate and fallback paths."""

import math
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from core.exceptions import PersistenceError, ValidationError
from db.repositories.barangay_rate_repository import RateCard
from fares.calculator import (
    FareCalculator,
    is_night_trip,
    round_half_up,
    validate_distance_km,
)
from fares.matrix import LOPEZ_FARES
from settings import FareSettings
from trip import DiscountType

MANILA = ZoneInfo("Asia/Manila")


class StubRateSource:
    def __init__(self, rate: RateCard | None):
        self.rate = rate
        self.calls: list[tuple[str, str | None]] = []

    def get_active_rate(self, barangay_name, default_barangay=None):
        self.calls.append((barangay_name, default_barangay))
        return self.rate


class FailingRateSource:
    def get_active_rate(self, barangay_name, default_barangay=None):
        raise PersistenceError("store unavailable")


@pytest.fixture
def lopez_rate() -> RateCard:
    return RateCard(
        barangay_name="Lopez",
        base_fare=25,
        per_kilometer=12.5,
        minimum_fare=25,
        night_surcharge=5,
    )


@pytest.fixture
def distance_calculator(lopez_rate) -> FareCalculator:
    return FareCalculator(
        FareSettings(matrix_enabled=False),
        rate_source=StubRateSource(lopez_rate),
    )


@pytest.mark.unit
class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value,expected",
        [(12.5, 13), (13.5, 14), (47.5, 48), (2.4, 2), (2.6, 3), (0.0, 0)],
    )
    def test_halves_round_up(self, value, expected):
        assert round_half_up(value) == expected


@pytest.mark.unit
class TestMatrixQuotes:
    def test_poblacion_senior(self):
        quote = FareCalculator().quote("POBLACION", has_senior_discount=True)

        assert quote.base_fare == 13
        assert quote.final_fare == 10
        assert quote.discount_amount == 3
        assert quote.discount_type == DiscountType.SENIOR
        assert quote.min_fare == quote.max_fare == 10
        assert quote.found is True
        assert quote.source == "matrix"

    def test_sugod_errand(self):
        quote = FareCalculator().quote("SUGOD", is_errand_mode=True)

        assert quote.errand_surcharge == 4
        assert quote.base_fare == 24
        assert quote.final_fare == 24
        assert quote.discount_amount is None

    def test_errand_with_pwd_discount_recomputes_discount(self):
        quote = FareCalculator().quote("SUGOD", is_errand_mode=True, has_pwd_discount=True)

        # regular 20 + 4, discounted 16 + round(3.2) = 19
        assert quote.base_fare == 24
        assert quote.final_fare == 19
        assert quote.discount_amount == 5
        assert quote.discount_type == DiscountType.PWD

    def test_senior_takes_precedence_over_pwd(self):
        quote = FareCalculator().quote("SUGOD", has_senior_discount=True, has_pwd_discount=True)

        assert quote.discount_type == DiscountType.SENIOR
        assert quote.final_fare == 16

    def test_unknown_destination_uses_floor(self):
        quote = FareCalculator().quote("NONEXISTENT ZONE")

        assert quote.found is False
        assert quote.final_fare == 15
        assert quote.min_fare == quote.max_fare == 15
        assert quote.destination == "NONEXISTENT ZONE"
        assert quote.source == "floor"

    @pytest.mark.parametrize(
        "flags",
        [
            {"has_senior_discount": True},
            {"has_pwd_discount": True, "is_errand_mode": True},
        ],
    )
    def test_unknown_destination_floor_ignores_discount_and_errand(self, flags):
        quote = FareCalculator().quote("NONEXISTENT ZONE", **flags)

        assert quote.final_fare == 15
        assert quote.min_fare == quote.max_fare == quote.base_fare == 15
        assert quote.discount_amount is None
        assert quote.discount_type is None
        assert quote.errand_surcharge == 0
        assert quote.source == "floor"

    def test_unknown_destination_logs_warning(self, caplog):
        with caplog.at_level("WARNING", logger="fares.calculator"):
            FareCalculator().quote("NONEXISTENT ZONE")

        assert "No matrix fare" in caplog.text

    def test_hit_reports_canonical_destination(self):
        quote = FareCalculator().quote("poblacion - bocboc")

        assert quote.destination == "BOCBOC (PUROK CENTRAL)"
        assert quote.route == "A6"

    def test_quotes_are_deterministic(self):
        calculator = FareCalculator()
        first = calculator.quote("MAL-AY", 3.2, False, True, False, True)
        second = calculator.quote("MAL-AY", 3.2, False, True, False, True)

        assert first == second

    def test_discount_never_makes_fare_negative_or_larger(self):
        calculator = FareCalculator()
        for route in LOPEZ_FARES:
            for senior in (False, True):
                for errand in (False, True):
                    quote = calculator.quote(
                        route.destination,
                        has_senior_discount=senior,
                        is_errand_mode=errand,
                    )
                    assert 0 <= quote.final_fare <= quote.base_fare


@pytest.mark.unit
class TestBarangayRateQuotes:
    def test_distance_pricing_band(self, distance_calculator):
        quote = distance_calculator.quote("Somewhere", distance_km=2.0)

        assert quote.source == "barangay_rate"
        assert quote.base_fare == 50
        assert quote.final_fare == 50
        assert quote.min_fare == 48  # 47.5 rounds up
        assert quote.max_fare == 53  # 52.5 rounds up
        assert quote.found is False

    def test_night_surcharge(self, distance_calculator):
        quote = distance_calculator.quote("Somewhere", distance_km=2.0, is_night_trip=True)

        assert quote.base_fare == 55
        assert quote.min_fare == 52
        assert quote.max_fare == 58

    def test_errand_surcharge(self, distance_calculator):
        quote = distance_calculator.quote("Somewhere", distance_km=2.0, is_errand_mode=True)

        assert quote.errand_surcharge == 10
        assert quote.base_fare == 60
        assert quote.final_fare == 60

    def test_discount_and_discounted_floor(self, distance_calculator):
        quote = distance_calculator.quote("Somewhere", distance_km=2.0, has_senior_discount=True)

        assert quote.discount_amount == 10
        assert quote.final_fare == 40
        assert quote.min_fare == 38
        assert quote.max_fare == 42

    def test_minimum_fare_clamp(self, distance_calculator):
        quote = distance_calculator.quote("Somewhere", distance_km=0.0)

        assert quote.base_fare == 25
        assert quote.min_fare == 25
        assert quote.max_fare == 26

    def test_lookup_uses_default_barangay(self, lopez_rate):
        source = StubRateSource(lopez_rate)
        calculator = FareCalculator(FareSettings(matrix_enabled=False), rate_source=source)

        calculator.quote("Somewhere", distance_km=1.0, barangay="Bocboc")

        assert source.calls == [("Bocboc", "Lopez")]

    def test_distance_strategy_on_matrix_miss(self, lopez_rate):
        calculator = FareCalculator(
            FareSettings(unmatched_strategy="distance"),
            rate_source=StubRateSource(lopez_rate),
        )

        miss = calculator.quote("NONEXISTENT ZONE", distance_km=2.0)
        hit = calculator.quote("SUGOD", distance_km=2.0)

        assert miss.source == "barangay_rate"
        assert miss.final_fare == 50
        assert hit.source == "matrix"
        assert hit.final_fare == 20

    def test_distance_strategy_without_distance_uses_floor(self, lopez_rate):
        calculator = FareCalculator(
            FareSettings(unmatched_strategy="distance"),
            rate_source=StubRateSource(lopez_rate),
        )

        quote = calculator.quote("NONEXISTENT ZONE")

        assert quote.final_fare == 15
        assert quote.source == "floor"


@pytest.mark.unit
class TestFallbackQuotes:
    def test_no_rate_uses_hard_fallback(self):
        calculator = FareCalculator(
            FareSettings(matrix_enabled=False),
            rate_source=StubRateSource(None),
        )

        quote = calculator.quote("Somewhere", distance_km=2.0)

        assert quote.source == "default"
        assert quote.min_fare == 45
        assert quote.base_fare == 50
        assert quote.max_fare == 55

    def test_store_failure_degrades_instead_of_raising(self, caplog):
        calculator = FareCalculator(
            FareSettings(matrix_enabled=False),
            rate_source=FailingRateSource(),
        )

        with caplog.at_level("WARNING", logger="fares.calculator"):
            quote = calculator.quote("Somewhere", distance_km=2.0)

        assert quote.source == "default"
        assert quote.final_fare == 50
        assert "Barangay rate lookup failed" in caplog.text

    def test_fallback_applies_errand_and_discount_proportionally(self):
        calculator = FareCalculator(FareSettings(matrix_enabled=False))

        quote = calculator.quote(
            "Somewhere",
            distance_km=2.0,
            is_errand_mode=True,
            has_pwd_discount=True,
        )

        # base 50 + 10 errand = 60, discount 12
        assert quote.base_fare == 60
        assert quote.final_fare == 48
        assert quote.min_fare == round_half_up(45 * 1.2 * 0.8)
        assert quote.max_fare == round_half_up(55 * 1.2 * 0.8)

    def test_invalid_distance_is_ignored_by_quote(self):
        calculator = FareCalculator(FareSettings(matrix_enabled=False))

        quote = calculator.quote("Somewhere", distance_km=math.nan)

        assert quote.final_fare == 15
        assert quote.source == "floor"


@pytest.mark.unit
class TestValidateDistance:
    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf, -0.1])
    def test_rejects_unpriceable_distances(self, bad):
        with pytest.raises(ValidationError):
            validate_distance_km(bad)

    def test_accepts_zero_and_none(self):
        assert validate_distance_km(0) == 0.0
        assert validate_distance_km(None) is None


@pytest.mark.unit
class TestNightWindow:
    @pytest.mark.parametrize(
        "hour,minute,expected",
        [(22, 0, True), (23, 59, True), (0, 0, True), (5, 59, True), (6, 0, False), (21, 59, False)],
    )
    def test_local_night_hours(self, hour, minute, expected):
        at = datetime(2024, 3, 4, hour, minute, tzinfo=MANILA)
        assert is_night_trip(at) is expected

    def test_converts_utc_to_local_time(self):
        # 14:30 UTC is 22:30 in Manila
        assert is_night_trip(datetime(2024, 3, 4, 14, 30, tzinfo=UTC)) is True
        assert is_night_trip(datetime(2024, 3, 4, 2, 0, tzinfo=UTC)) is False

    def test_naive_datetime_is_read_as_utc(self):
        assert is_night_trip(datetime(2024, 3, 4, 14, 30)) is True
        assert is_night_trip(datetime(2024, 3, 4, 23, 0)) is False

    def test_non_wrapping_window(self):
        settings = FareSettings(night_start_hour=1, night_end_hour=4)
        assert is_night_trip(datetime(2024, 3, 4, 2, 0, tzinfo=MANILA), settings) is True
        assert is_night_trip(datetime(2024, 3, 4, 23, 0, tzinfo=MANILA), settings) is False
