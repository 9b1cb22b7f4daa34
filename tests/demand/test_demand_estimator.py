from datetime import UTC, datetime, timedelta

import pytest

from core.exceptions import ValidationError
from demand.estimator import DemandEstimator
from demand.zones import DemandZone
from settings import DemandSettings
from tests.factories import LOPEZ_CENTER

# 09:00 UTC is 17:00 in Lopez, a peak hour for every default zone
PEAK = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)
# 02:00 Lopez time, no zone is in its peak
QUIET = datetime(2024, 3, 4, 18, 0, tzinfo=UTC)


def complete_trip(lifecycle, dispatcher, factory, requested_at):
    trip = lifecycle.request_trip(**factory.trip_request(now=requested_at))
    driver = factory.driver()
    dispatcher.accept(trip.trip_id, driver)
    lifecycle.start_trip(trip.trip_id, driver.driver_id)
    lifecycle.complete_trip(trip.trip_id, driver.driver_id)
    return trip


@pytest.mark.unit
class TestPredict:
    def test_no_peak_zones(self, session_factory):
        assert DemandEstimator(session_factory).predict(QUIET) == []

    def test_static_averages_without_history(self, session_factory):
        forecasts = DemandEstimator(session_factory).predict(PEAK)

        assert [f.zone.zone_id for f in forecasts] == ["terminal_1", "market_1", "school_1"]
        assert [f.expected_demand for f in forecasts] == [25, 20, 15]
        assert all(f.historical_count == 0 for f in forecasts)

    def test_history_blends_with_average(self, session_factory, lifecycle, dispatcher, factory):
        complete_trip(lifecycle, dispatcher, factory, PEAK - timedelta(days=7))

        forecasts = {f.zone.zone_id: f for f in DemandEstimator(session_factory).predict(PEAK)}

        assert forecasts["terminal_1"].historical_count == 1
        assert forecasts["terminal_1"].expected_demand == 13.0
        assert forecasts["school_1"].expected_demand == 8.0

    def test_history_from_other_hours_is_ignored(
        self, session_factory, lifecycle, dispatcher, factory
    ):
        complete_trip(lifecycle, dispatcher, factory, PEAK - timedelta(hours=3))

        forecasts = DemandEstimator(session_factory).predict(PEAK)

        assert all(f.historical_count == 0 for f in forecasts)

    def test_open_trips_are_not_history(self, session_factory, lifecycle, factory):
        lifecycle.request_trip(**factory.trip_request(now=PEAK - timedelta(days=1)))

        assert DemandEstimator(session_factory).historical_demand() == {}

    def test_historical_demand_buckets_by_local_hour(
        self, session_factory, lifecycle, dispatcher, factory
    ):
        complete_trip(lifecycle, dispatcher, factory, PEAK)
        complete_trip(lifecycle, dispatcher, factory, PEAK + timedelta(minutes=30))

        buckets = DemandEstimator(session_factory).historical_demand()

        assert len(buckets) == 1
        ((cell, hour), count), = buckets.items()
        assert hour == 17
        assert count == 2


@pytest.mark.unit
class TestSuggest:
    def test_priorities_from_shortfall(self, session_factory, location_index):
        estimator = DemandEstimator(
            session_factory,
            location_index,
            zones=(
                DemandZone("z_high", "Plaza", "other", *LOPEZ_CENTER, 0.5, (17,), 10),
                DemandZone("z_low", "Pier", "other", 13.95, 122.30, 0.5, (17,), 2.5),
                DemandZone("z_medium", "Chapel", "church", 13.90, 122.20, 0.5, (17,), 5),
            ),
        )
        location_index.upsert("d1", *LOPEZ_CENTER, "available")

        suggestions = estimator.suggest(PEAK)

        assert [(s.zone_id, s.priority) for s in suggestions] == [
            ("z_high", "high"),
            ("z_medium", "medium"),
            ("z_low", "low"),
        ]
        high = suggestions[0]
        assert (high.suggested_drivers, high.current_drivers, high.shortfall) == (4, 1, 3)
        assert "Plaza" in high.reason

    def test_covered_zones_are_skipped(self, session_factory, location_index):
        estimator = DemandEstimator(
            session_factory,
            location_index,
            zones=(DemandZone("z1", "Plaza", "other", *LOPEZ_CENTER, 0.5, (17,), 5),),
        )
        location_index.upsert("d1", *LOPEZ_CENTER, "available")
        location_index.upsert("d2", *LOPEZ_CENTER, "on_ride")

        assert estimator.suggest(PEAK) == []

    def test_offline_drivers_do_not_count(self, session_factory, location_index):
        estimator = DemandEstimator(
            session_factory,
            location_index,
            zones=(DemandZone("z1", "Plaza", "other", *LOPEZ_CENTER, 0.5, (17,), 5),),
        )
        location_index.upsert("d1", *LOPEZ_CENTER, "offline")

        (suggestion,) = estimator.suggest(PEAK)
        assert suggestion.current_drivers == 0

    def test_custom_tiers(self, session_factory):
        estimator = DemandEstimator(
            session_factory,
            settings=DemandSettings(high_priority_shortfall=10, medium_priority_shortfall=5),
        )

        priorities = {s.zone_id: s.priority for s in estimator.suggest(PEAK)}

        # terminal 10, market 8, school 6 drivers short
        assert priorities == {"terminal_1": "high", "market_1": "medium", "school_1": "medium"}


@pytest.mark.unit
class TestZones:
    def test_add_zone(self, session_factory):
        estimator = DemandEstimator(session_factory)

        zone = estimator.add_zone("Rural Health Unit", 13.886, 122.262, 0.3, (8, 9), 6, "hospital")

        assert zone.zone_id.startswith("zone_")
        assert zone in estimator.zones
        assert len(estimator.zones) == 4

    @pytest.mark.parametrize(
        "radius,demand,hours",
        [(0, 5, (8,)), (0.3, -1, (8,)), (0.3, 5, (24,))],
    )
    def test_add_zone_rejects_bad_values(self, session_factory, radius, demand, hours):
        with pytest.raises(ValidationError):
            DemandEstimator(session_factory).add_zone("Bad", 13.88, 122.26, radius, hours, demand)
