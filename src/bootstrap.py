"""Wires the dispatch core from settings: store, fares, dispatch, scheduling, demand."""

import logging
from dataclasses import dataclass

import pydantic
from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import ConfigurationError
from db.database import init_database
from demand.estimator import DemandEstimator
from dispatch.booking_dispatcher import BookingDispatcher
from dispatch.driver_location_index import DriverLocationIndex, DriverLocationProvider
from dispatch_logging import setup_logging
from fares.calculator import FareCalculator
from fares.rates import StoreRateSource
from scheduling.manager import ScheduledRideManager
from settings import Settings, get_settings
from trips.lifecycle import TripLifecycleService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchCore:
    settings: Settings
    session_factory: sessionmaker[Session]
    location_index: DriverLocationProvider
    fares: FareCalculator
    dispatcher: BookingDispatcher
    trips: TripLifecycleService
    scheduled_rides: ScheduledRideManager
    demand: DemandEstimator


def load_settings() -> Settings:
    """Read settings from the environment.

    Raises:
        ConfigurationError: An environment value failed validation.
    """
    try:
        return get_settings()
    except pydantic.ValidationError as exc:
        raise ConfigurationError(
            "Invalid dispatch configuration",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


def create_dispatch_core(
    settings: Settings | None = None,
    location_index: DriverLocationProvider | None = None,
    configure_logging: bool = True,
) -> DispatchCore:
    """Build every service over one trip store.

    Seeding runs here, once, before any service is handed out.
    """
    settings = settings or load_settings()

    if configure_logging:
        setup_logging(settings.app)

    session_factory = init_database(
        settings.database.url,
        busy_timeout_seconds=settings.database.busy_timeout_seconds,
        echo=settings.database.echo,
        fare_settings=settings.fare,
    )

    if location_index is None:
        location_index = DriverLocationIndex(h3_resolution=settings.demand.h3_resolution)

    fares = FareCalculator(settings.fare, rate_source=StoreRateSource(session_factory))

    core = DispatchCore(
        settings=settings,
        session_factory=session_factory,
        location_index=location_index,
        fares=fares,
        dispatcher=BookingDispatcher(session_factory, settings.dispatch, location_index),
        trips=TripLifecycleService(session_factory, fares, location_index),
        scheduled_rides=ScheduledRideManager(session_factory),
        demand=DemandEstimator(session_factory, location_index, settings.demand),
    )
    logger.info("Dispatch core ready (%s)", settings.app.environment)
    return core
