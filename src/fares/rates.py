"""Barangay rate sources for the distance-based fare path."""

from typing import Any, Protocol

from sqlalchemy.orm import Session, sessionmaker

from db.repositories.barangay_rate_repository import BarangayRateRepository, RateCard
from db.transaction import transaction


class RateSource(Protocol):
    def get_active_rate(
        self,
        barangay_name: str,
        default_barangay: str | None = None,
    ) -> RateCard | None: ...


class StoreRateSource:
    """Reads the active barangay rate from the trip store, one session per lookup."""

    def __init__(self, session_factory: sessionmaker[Session] | Any):
        self._session_factory = session_factory

    def get_active_rate(
        self,
        barangay_name: str,
        default_barangay: str | None = None,
    ) -> RateCard | None:
        with self._session_factory() as session, transaction(session):
            return BarangayRateRepository(session).get_active_rate(
                barangay_name, default_barangay=default_barangay
            )
