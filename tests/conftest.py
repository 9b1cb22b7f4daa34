from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from db.database import init_database
from dispatch.booking_dispatcher import BookingDispatcher
from dispatch.driver_location_index import DriverLocationIndex
from fares.calculator import FareCalculator
from fares.rates import StoreRateSource
from scheduling.manager import ScheduledRideManager
from settings import DispatchSettings, FareSettings
from tests.factories import DispatchFactory, create_faker_instance
from trips.lifecycle import TripLifecycleService

if TYPE_CHECKING:
    from faker.proxy import Faker


@pytest.fixture
def fake() -> "Faker":
    """Seeded Faker instance for deterministic test data."""
    return create_faker_instance(seed=42)


@pytest.fixture
def factory() -> DispatchFactory:
    """Factory for drivers, passengers and places with seeded Faker."""
    return DispatchFactory(seed=42)


@pytest.fixture
def temp_sqlite_db(tmp_path):
    """Temporary SQLite database for persistence tests."""
    return tmp_path / "test_dispatch.db"


@pytest.fixture
def session_factory(temp_sqlite_db):
    """Initialized and seeded trip store."""
    return init_database(str(temp_sqlite_db))


@pytest.fixture
def now() -> datetime:
    """Fixed reference time: 2024-03-04 10:00 UTC (18:00 in Lopez)."""
    return datetime(2024, 3, 4, 10, 0, tzinfo=UTC)


@pytest.fixture
def fare_settings() -> FareSettings:
    return FareSettings()


@pytest.fixture
def location_index() -> DriverLocationIndex:
    return DriverLocationIndex()


@pytest.fixture
def fare_calculator(session_factory, fare_settings) -> FareCalculator:
    return FareCalculator(fare_settings, rate_source=StoreRateSource(session_factory))


@pytest.fixture
def lifecycle(session_factory, fare_calculator, location_index) -> TripLifecycleService:
    return TripLifecycleService(session_factory, fare_calculator, location_index)


@pytest.fixture
def dispatcher(session_factory, location_index) -> BookingDispatcher:
    return BookingDispatcher(session_factory, DispatchSettings(), location_index)


@pytest.fixture
def scheduler(session_factory) -> ScheduledRideManager:
    return ScheduledRideManager(session_factory)
