from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackingSettings(BaseSettings):
    tick_interval_seconds: float = Field(default=2.0, gt=0.0, le=60.0)
    total_steps: int = Field(default=100, ge=1, le=10_000)
    preparation_delay_min_seconds: float = Field(default=10.0, ge=0.0)
    preparation_delay_max_seconds: float = Field(default=15.0, ge=0.0)
    completion_grace_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Delay between arrival and the completion callback so the UI can show the arrival message",
    )
    cancellation_grace_seconds: float = Field(default=2.0, ge=0.0)

    # Synthetic route generation
    start_distance_min_km: float = Field(default=1.5, gt=0.0)
    start_distance_max_km: float = Field(default=3.0, gt=0.0)

    # Movement model
    average_speed_kmh: float = Field(
        default=30.0,
        gt=0.0,
        description="Speed used to derive ETA from distance when no estimate is supplied",
    )
    final_speed_kmh: float = Field(default=5.0, ge=0.0)
    arriving_progress_threshold: float = Field(
        default=0.8,
        gt=0.0,
        lt=1.0,
        description="Route progress after which an on-the-way provider is reported as arriving",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"

    model_config = SettingsConfigDict(env_prefix="TRACKING_")

    @model_validator(mode="after")
    def validate_ranges(self) -> "TrackingSettings":
        if self.preparation_delay_min_seconds > self.preparation_delay_max_seconds:
            raise ValueError("preparation_delay_min_seconds must not exceed the maximum")
        if self.start_distance_min_km > self.start_distance_max_km:
            raise ValueError("start_distance_min_km must not exceed the maximum")
        if self.final_speed_kmh > self.average_speed_kmh:
            raise ValueError("final_speed_kmh must not exceed average_speed_kmh")
        return self


class RedisSettings(BaseSettings):
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""
    ssl: bool = False
    poll_interval_seconds: float = Field(
        default=0.5,
        gt=0.0,
        le=10.0,
        description="Simulation seconds between pub/sub polls for live location notifications",
    )

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class MapsSettings(BaseSettings):
    api_key: str = ""
    base_url: str = "https://maps.googleapis.com"
    libraries: str = "places,geometry"
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0.0, le=10.0)
    timeout_seconds: float = Field(default=15.0, gt=0.0, le=120.0)

    model_config = SettingsConfigDict(env_prefix="MAPS_")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Maps base URL must start with http:// or https://")
        return v.rstrip("/")


class Settings(BaseSettings):
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    maps: MapsSettings = Field(default_factory=MapsSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
