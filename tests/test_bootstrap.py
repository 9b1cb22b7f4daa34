import pytest

from bootstrap import create_dispatch_core, load_settings
from core.exceptions import ConfigurationError
from dispatch.driver_location_index import DriverLocationIndex
from settings import DatabaseSettings, FareSettings, Settings
from tests.factories import LOPEZ_CENTER


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database=DatabaseSettings(url=str(tmp_path / "core.db")),
        fare=FareSettings(unmatched_strategy="distance"),
    )


@pytest.mark.unit
class TestLoadSettings:
    def test_invalid_environment_becomes_configuration_error(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_AVERAGE_SPEED_KMH", "-4")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert exc_info.value.details["errors"]

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DEMAND_BOOKINGS_PER_DRIVER", "4")
        assert load_settings().demand.bookings_per_driver == 4.0


@pytest.mark.unit
class TestCreateDispatchCore:
    def test_services_share_one_store(self, settings, factory, now):
        core = create_dispatch_core(settings, configure_logging=False)

        trip = core.trips.request_trip(**factory.trip_request(now=now))
        candidates = core.dispatcher.list_candidates(driver_location=LOPEZ_CENTER, now=now)

        assert [c.trip_id for c in candidates] == [trip.trip_id]
        assert isinstance(core.location_index, DriverLocationIndex)

    def test_fares_read_seeded_barangay_rate(self, settings):
        core = create_dispatch_core(settings, configure_logging=False)

        quote = core.fares.quote("Unlisted sitio", distance_km=2.0)

        assert quote.source == "barangay_rate"
        assert quote.final_fare == 50

    def test_uses_supplied_location_index(self, settings):
        index = DriverLocationIndex()
        core = create_dispatch_core(settings, location_index=index, configure_logging=False)
        assert core.location_index is index
