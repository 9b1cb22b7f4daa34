from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _validate_timezone(v: str) -> str:
    try:
        ZoneInfo(v)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {v}") from exc
    return v


class AppSettings(BaseSettings):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="TRIKE_")


class DatabaseSettings(BaseSettings):
    url: str = Field(
        default="data/trike_dispatch.db",
        description="SQLAlchemy URL, or a bare filesystem path for a local SQLite store",
    )
    busy_timeout_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=300.0,
        description="How long a SQLite writer waits for a competing writer to commit",
    )
    echo: bool = False

    model_config = SettingsConfigDict(env_prefix="DB_")


class FareSettings(BaseSettings):
    """Fare matrix, barangay-rate fallback and discount configuration."""

    matrix_enabled: bool = Field(
        default=True,
        description="Price trips from the fixed Lopez fare matrix before any distance rate",
    )
    unmatched_strategy: Literal["floor", "distance"] = Field(
        default="floor",
        description="Matrix miss: charge the floor fare, or fall back to the barangay rate",
    )
    minimum_fare: int = Field(default=15, ge=0)
    discount_rate: float = Field(default=0.20, ge=0.0, lt=1.0)
    errand_surcharge_rate: float = Field(default=0.20, ge=0.0, le=1.0)
    variance: float = Field(default=0.05, ge=0.0, lt=1.0)

    # Seed values for the default barangay rate
    default_barangay: str = "Lopez"
    default_base_fare: int = Field(default=25, ge=0)
    default_per_kilometer: float = Field(default=12.5, ge=0.0)
    default_minimum_fare: int = Field(default=25, ge=0)
    default_night_surcharge: int = Field(default=5, ge=0)

    # Used when no barangay rate can be read at all
    fallback_base_fare: int = Field(default=25, ge=0)
    fallback_per_km_min: float = Field(default=10.0, ge=0.0)
    fallback_per_km_max: float = Field(default=15.0, ge=0.0)

    night_start_hour: int = Field(default=22, ge=0, le=23)
    night_end_hour: int = Field(
        default=6,
        ge=0,
        le=23,
        description="First hour (local) that is no longer night",
    )
    timezone: str = "Asia/Manila"

    model_config = SettingsConfigDict(env_prefix="FARE_")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return _validate_timezone(v)

    @model_validator(mode="after")
    def validate_fallback_band(self) -> "FareSettings":
        if self.fallback_per_km_min > self.fallback_per_km_max:
            raise ValueError(
                f"FARE_FALLBACK_PER_KM_MIN ({self.fallback_per_km_min}) must not exceed "
                f"FARE_FALLBACK_PER_KM_MAX ({self.fallback_per_km_max})"
            )
        return self


class DispatchSettings(BaseSettings):
    """Candidate listing and ranking configuration."""

    stale_after_minutes: int = Field(
        default=60,
        ge=1,
        description="Searching trips older than this are hidden from drivers",
    )
    average_speed_kmh: float = Field(default=30.0, gt=0.0)
    default_eta_minutes: int = Field(
        default=5,
        ge=1,
        description="ETA shown when the pickup has no coordinates",
    )
    poll_interval_seconds: float = Field(
        default=3.0,
        ge=1.0,
        le=60.0,
        description="Cadence at which driver clients are expected to poll candidates",
    )

    model_config = SettingsConfigDict(env_prefix="DISPATCH_")


class DemandSettings(BaseSettings):
    """Predictive positioning heuristics."""

    bookings_per_driver: float = Field(default=2.5, gt=0.0)
    high_priority_shortfall: int = Field(default=3, ge=1)
    medium_priority_shortfall: int = Field(default=2, ge=1)
    h3_resolution: int = Field(default=10, ge=0, le=15)
    timezone: str = "Asia/Manila"

    model_config = SettingsConfigDict(env_prefix="DEMAND_")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return _validate_timezone(v)

    @model_validator(mode="after")
    def validate_priority_tiers(self) -> "DemandSettings":
        if self.medium_priority_shortfall > self.high_priority_shortfall:
            raise ValueError(
                "DEMAND_MEDIUM_PRIORITY_SHORTFALL must not exceed DEMAND_HIGH_PRIORITY_SHORTFALL"
            )
        return self


class Settings(BaseSettings):
    app: AppSettings = Field(default_factory=AppSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    fare: FareSettings = Field(default_factory=FareSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    demand: DemandSettings = Field(default_factory=DemandSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
