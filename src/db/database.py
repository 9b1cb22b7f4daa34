"""Database engine initialization and connection management."""

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from settings import FareSettings

from .repositories.barangay_rate_repository import BarangayRateRepository
from .schema import Base, StoreMetadata
from .transaction import transaction
from .utils import utc_now

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
_SEEDED_KEY = "reference_data_seeded"


def _resolve_url(url_or_path: str) -> str:
    """Accept a SQLAlchemy URL or a bare path to a SQLite file."""
    if "://" in url_or_path:
        return url_or_path
    db_dir = Path(url_or_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{url_or_path}"


def _enable_sqlite_write_locking(engine: Engine) -> None:
    """Take the SQLite write lock at BEGIN.

    With pysqlite's default deferred transactions two connections can both
    read and then both try to upgrade to a writer, and one of them fails
    immediately instead of waiting. Starting every transaction with
    BEGIN IMMEDIATE serialises writers behind the busy timeout.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_database(
    url_or_path: str,
    busy_timeout_seconds: float = 30.0,
    echo: bool = False,
    fare_settings: FareSettings | None = None,
) -> sessionmaker[Session]:
    """Initialize database and return session factory.

    Creates missing tables, then runs the idempotent seeding phase once
    before any request is served.
    """
    url = _resolve_url(url_or_path)
    is_sqlite = url.startswith("sqlite")

    connect_args: dict[str, Any] = {}
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": busy_timeout_seconds}

    engine = create_engine(url, echo=echo, connect_args=connect_args)
    if is_sqlite:
        _enable_sqlite_write_locking(engine)

    Base.metadata.create_all(engine)

    session_maker = sessionmaker(bind=engine, expire_on_commit=False)

    with session_maker() as session, transaction(session):
        ensure_seeded(session, fare_settings or FareSettings())

    logger.info("Trip store ready at %s", engine.url.render_as_string(hide_password=True))
    return session_maker


def ensure_seeded(session: Session, fare_settings: FareSettings) -> bool:
    """Write schema metadata and the default barangay rate if missing.

    Returns True when this call performed the seeding. Safe to run on every
    startup; an already seeded store is left untouched.
    """
    schema_version = session.get(StoreMetadata, "schema_version")
    if schema_version is None:
        session.add(StoreMetadata(key="schema_version", value=SCHEMA_VERSION))

    marker = session.execute(
        select(StoreMetadata).where(StoreMetadata.key == _SEEDED_KEY)
    ).scalar_one_or_none()
    if marker is not None:
        return False

    rates = BarangayRateRepository(session)
    if rates.get_active_rate(fare_settings.default_barangay) is None:
        rates.set_rate(
            barangay_name=fare_settings.default_barangay,
            base_fare=fare_settings.default_base_fare,
            per_kilometer=fare_settings.default_per_kilometer,
            minimum_fare=fare_settings.default_minimum_fare,
            night_surcharge=fare_settings.default_night_surcharge,
        )

    session.add(StoreMetadata(key=_SEEDED_KEY, value=utc_now().isoformat()))
    logger.info("Seeded default barangay rate for %s", fare_settings.default_barangay)
    return True
