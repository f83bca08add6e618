import pytest
from pydantic import ValidationError

from roadside_tracking.settings import (
    MapsSettings,
    RedisSettings,
    Settings,
    TrackingSettings,
    get_settings,
)


@pytest.mark.unit
class TestTrackingSettings:
    def test_defaults(self):
        settings = TrackingSettings()
        assert settings.tick_interval_seconds == 2.0
        assert settings.total_steps == 100
        assert settings.preparation_delay_min_seconds == 10.0
        assert settings.preparation_delay_max_seconds == 15.0
        assert settings.completion_grace_seconds == 3.0
        assert settings.cancellation_grace_seconds == 2.0
        assert settings.start_distance_min_km == 1.5
        assert settings.start_distance_max_km == 3.0
        assert settings.average_speed_kmh == 30.0
        assert settings.final_speed_kmh == 5.0
        assert settings.arriving_progress_threshold == 0.8
        assert settings.log_level == "INFO"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("TRACKING_TICK_INTERVAL_SECONDS", "0.5")
        monkeypatch.setenv("TRACKING_TOTAL_STEPS", "20")
        monkeypatch.setenv("TRACKING_LOG_FORMAT", "json")

        settings = TrackingSettings()
        assert settings.tick_interval_seconds == 0.5
        assert settings.total_steps == 20
        assert settings.log_format == "json"

    def test_validation(self):
        with pytest.raises(ValidationError):
            TrackingSettings(tick_interval_seconds=0)

        with pytest.raises(ValidationError):
            TrackingSettings(total_steps=0)

        with pytest.raises(ValidationError):
            TrackingSettings(arriving_progress_threshold=1.0)

    def test_ranges_must_be_ordered(self):
        with pytest.raises(ValidationError):
            TrackingSettings(preparation_delay_min_seconds=20, preparation_delay_max_seconds=15)

        with pytest.raises(ValidationError):
            TrackingSettings(start_distance_min_km=4.0, start_distance_max_km=3.0)

        with pytest.raises(ValidationError):
            TrackingSettings(final_speed_kmh=40.0)


@pytest.mark.unit
class TestRedisSettings:
    def test_defaults(self):
        settings = RedisSettings()
        assert settings.host == "localhost"
        assert settings.port == 6379
        assert settings.poll_interval_seconds == 0.5

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("REDIS_HOST", "redis.internal")
        monkeypatch.setenv("REDIS_PORT", "6380")
        settings = RedisSettings()
        assert settings.host == "redis.internal"
        assert settings.port == 6380


@pytest.mark.unit
class TestMapsSettings:
    def test_defaults(self):
        settings = MapsSettings()
        assert settings.api_key == ""
        assert settings.max_retries == 3
        assert settings.timeout_seconds == 15.0

    def test_base_url_trailing_slash_stripped(self):
        settings = MapsSettings(base_url="https://maps.example.com/")
        assert settings.base_url == "https://maps.example.com"

    def test_base_url_requires_http_scheme(self):
        with pytest.raises(ValidationError):
            MapsSettings(base_url="ftp://maps.example.com")


@pytest.mark.unit
class TestSettings:
    def test_nested_defaults(self):
        settings = Settings()
        assert isinstance(settings.tracking, TrackingSettings)
        assert isinstance(settings.redis, RedisSettings)
        assert isinstance(settings.maps, MapsSettings)

    def test_get_settings(self, monkeypatch):
        monkeypatch.setenv("MAPS_API_KEY", "test-key")
        settings = get_settings()
        assert settings.maps.api_key == "test-key"
