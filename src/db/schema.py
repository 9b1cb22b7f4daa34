"""SQLAlchemy ORM models for the trip store."""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from .utils import as_utc, utc_now


class UTCDateTime(TypeDecorator[datetime]):
    """Stores UTC, returns timezone-aware datetimes on every backend.

    SQLite drops tzinfo, so values are normalised to naive UTC on the way in
    and re-tagged on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return as_utc(value)


class Base(DeclarativeBase):
    type_annotation_map = {datetime: UTCDateTime}


class Trip(Base):
    __tablename__ = "trips"

    trip_id: Mapped[str] = mapped_column(String, primary_key=True)
    passenger_id: Mapped[str] = mapped_column(String, nullable=False)
    passenger_name: Mapped[str | None] = mapped_column(String, nullable=True)
    passenger_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    preferred_driver_id: Mapped[str | None] = mapped_column(String, nullable=True)

    driver_id: Mapped[str | None] = mapped_column(String, nullable=True)
    driver_name: Mapped[str | None] = mapped_column(String, nullable=True)
    driver_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    driver_photo: Mapped[str | None] = mapped_column(String, nullable=True)
    tricycle_plate: Mapped[str | None] = mapped_column(String, nullable=True)

    status: Mapped[str] = mapped_column(String, nullable=False)

    pickup_location: Mapped[str] = mapped_column(String, nullable=False)
    pickup_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    pickup_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    dropoff_location: Mapped[str] = mapped_column(String, nullable=False)
    dropoff_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    dropoff_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)

    base_fare: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0)
    discount_type: Mapped[str | None] = mapped_column(String, nullable=True)
    final_fare: Mapped[int] = mapped_column(Integer, nullable=False)
    ride_mode: Mapped[str] = mapped_column(String, nullable=False, default="normal")
    errand_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    passenger_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    passenger_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    driver_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    driver_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)

    cancelled_by: Mapped[str | None] = mapped_column(String, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    arrived_at: Mapped[datetime | None] = mapped_column(nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    __table_args__ = (
        Index("idx_trip_status_created", "status", "created_at"),
        Index("idx_trip_driver", "driver_id"),
        Index("idx_trip_passenger", "passenger_id"),
    )


class ScheduledRide(Base):
    __tablename__ = "scheduled_rides"

    ride_id: Mapped[str] = mapped_column(String, primary_key=True)
    passenger_id: Mapped[str] = mapped_column(String, nullable=False)
    passenger_name: Mapped[str | None] = mapped_column(String, nullable=True)
    passenger_phone: Mapped[str | None] = mapped_column(String, nullable=True)

    driver_id: Mapped[str | None] = mapped_column(String, nullable=True)
    driver_name: Mapped[str | None] = mapped_column(String, nullable=True)
    driver_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    driver_photo: Mapped[str | None] = mapped_column(String, nullable=True)
    tricycle_plate: Mapped[str | None] = mapped_column(String, nullable=True)

    status: Mapped[str] = mapped_column(String, nullable=False)

    pickup_location: Mapped[str] = mapped_column(String, nullable=False)
    pickup_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    pickup_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    dropoff_location: Mapped[str] = mapped_column(String, nullable=False)
    dropoff_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    dropoff_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    scheduled_at: Mapped[datetime] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    __table_args__ = (
        Index("idx_scheduled_status_time", "status", "scheduled_at"),
        Index("idx_scheduled_driver", "driver_id"),
        Index("idx_scheduled_passenger", "passenger_id"),
    )


class BarangayRate(Base):
    __tablename__ = "barangay_rates"

    rate_id: Mapped[str] = mapped_column(String, primary_key=True)
    barangay_name: Mapped[str] = mapped_column(String, nullable=False)
    base_fare: Mapped[int] = mapped_column(Integer, nullable=False)
    per_kilometer: Mapped[float] = mapped_column(Float, nullable=False)
    minimum_fare: Mapped[int] = mapped_column(Integer, nullable=False)
    night_surcharge: Mapped[int] = mapped_column(Integer, default=0)
    effective_date: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        Index("idx_rate_barangay_active", "barangay_name", "is_active"),
    )


class DriverStats(Base):
    __tablename__ = "driver_stats"

    driver_id: Mapped[str] = mapped_column(String, primary_key=True)
    total_rides: Mapped[int] = mapped_column(Integer, default=0)
    rating_count: Mapped[int] = mapped_column(Integer, default=0)
    average_rating: Mapped[float] = mapped_column(Float, default=0.0)
    safety_badge: Mapped[str] = mapped_column(String, nullable=False, default="yellow")
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )


class StoreMetadata(Base):
    __tablename__ = "store_metadata"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )
