"""Barangay rate repository backing the distance-based fare path."""

import uuid
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..schema import BarangayRate
from ..utils import utc_now


class RateCard(BaseModel):
    """Active fare parameters for one barangay."""

    barangay_name: str
    base_fare: int
    per_kilometer: float
    minimum_fare: int
    night_surcharge: int = 0
    effective_date: datetime | None = None


class BarangayRateRepository:
    """Repository for barangay fare rates."""

    def __init__(self, session: Session):
        self.session = session

    def get_active_rate(
        self,
        barangay_name: str,
        default_barangay: str | None = None,
    ) -> RateCard | None:
        """Most recent active rate for a barangay.

        Falls back to ``default_barangay`` when the named barangay has no
        active rate.
        """
        rate = self._latest_active(barangay_name)
        if rate is None and default_barangay and default_barangay != barangay_name:
            rate = self._latest_active(default_barangay)
        if rate is None:
            return None
        return self._to_domain(rate)

    def set_rate(
        self,
        barangay_name: str,
        base_fare: int,
        per_kilometer: float,
        minimum_fare: int,
        night_surcharge: int = 0,
        effective_date: datetime | None = None,
    ) -> RateCard:
        """Insert a new active rate and deactivate the previous ones."""
        self.session.execute(
            update(BarangayRate)
            .where(
                BarangayRate.barangay_name == barangay_name,
                BarangayRate.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        rate = BarangayRate(
            rate_id=str(uuid.uuid4()),
            barangay_name=barangay_name,
            base_fare=base_fare,
            per_kilometer=per_kilometer,
            minimum_fare=minimum_fare,
            night_surcharge=night_surcharge,
            effective_date=effective_date or utc_now(),
            is_active=True,
        )
        self.session.add(rate)
        self.session.flush()
        return self._to_domain(rate)

    def _latest_active(self, barangay_name: str) -> BarangayRate | None:
        stmt = (
            select(BarangayRate)
            .where(
                BarangayRate.barangay_name == barangay_name,
                BarangayRate.is_active.is_(True),
            )
            .order_by(BarangayRate.effective_date.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def _to_domain(self, rate: BarangayRate) -> RateCard:
        return RateCard(
            barangay_name=rate.barangay_name,
            base_fare=rate.base_fare,
            per_kilometer=rate.per_kilometer,
            minimum_fare=rate.minimum_fare,
            night_surcharge=rate.night_surcharge or 0,
            effective_date=rate.effective_date,
        )
