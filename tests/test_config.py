"""Tests for monitoring configuration."""

from datetime import datetime
from pathlib import Path

import pytest

from thundercloud.config import MonitorConfig, QuietHours, validate_distances


class TestQuietHours:
    """Tests for the night-mode window."""

    def test_wraps_midnight(self):
        quiet = QuietHours(start_hour=20, end_hour=8)
        assert quiet.contains(datetime(2024, 7, 1, 21, 0))
        assert quiet.contains(datetime(2024, 7, 1, 3, 0))
        assert not quiet.contains(datetime(2024, 7, 1, 8, 0))
        assert not quiet.contains(datetime(2024, 7, 1, 19, 59))

    def test_same_day_window(self):
        quiet = QuietHours(start_hour=1, end_hour=5)
        assert quiet.contains(datetime(2024, 7, 1, 1, 0))
        assert not quiet.contains(datetime(2024, 7, 1, 5, 0))

    def test_utc_offset_applied(self):
        """12:00 UTC is 21:00 at UTC+9, inside a 20-8 window."""
        quiet = QuietHours(start_hour=20, end_hour=8, utc_offset_hours=9)
        assert quiet.contains(datetime(2024, 7, 1, 12, 0))
        assert not quiet.contains(datetime(2024, 7, 1, 3, 0))  # 12:00 local

    def test_empty_window(self):
        assert not QuietHours(start_hour=5, end_hour=5).contains(datetime(2024, 7, 1, 5, 0))

    def test_parse(self):
        quiet = QuietHours.parse("20-8", utc_offset_hours=9)
        assert quiet == QuietHours(20, 8, 9)

    @pytest.mark.parametrize("value", ["20", "a-b", "25-3"])
    def test_parse_invalid(self, value):
        with pytest.raises(ValueError):
            QuietHours.parse(value)


class TestValidateDistances:
    """Tests for distance validation."""

    def test_accepts_ascending(self):
        validate_distances((50.0, 160.0, 250.0))

    @pytest.mark.parametrize(
        "distances",
        [(), (0.0, 50.0), (160.0, 50.0, 250.0), (50.0, 50.0)],
    )
    def test_rejects_invalid(self, distances):
        with pytest.raises(ValueError):
            validate_distances(distances)


class TestMonitorConfig:
    """Tests for MonitorConfig."""

    def test_defaults(self):
        config = MonitorConfig()
        assert config.directions == ("north", "south", "east", "west")
        assert config.distances_km == (50.0, 160.0, 250.0)
        assert config.cache_ttl_seconds == 300
        assert config.cleanup_retention_hours == 2.0
        assert config.batch_size == 100
        assert config.batch_delay_seconds == 2.0
        assert config.fallback_delay_seconds == 0.1
        assert config.batch_timeout_seconds == 60.0
        assert config.thunder_cloud_threshold == 0.6
        assert config.weights == "reference"
        assert config.projection == "axis_aligned"
        assert config.quiet_hours is None

    def test_rejects_bad_values(self):
        with pytest.raises(ValueError):
            MonitorConfig(batch_size=0)
        with pytest.raises(ValueError):
            MonitorConfig(thunder_cloud_threshold=1.5)
        with pytest.raises(ValueError):
            MonitorConfig(projection="mercator")

    def test_with_overrides(self):
        config = MonitorConfig().with_overrides(batch_size=10)
        assert config.batch_size == 10
        assert config.cache_ttl_seconds == 300

    def test_from_env_empty(self):
        assert MonitorConfig.from_env({}) == MonitorConfig()

    def test_from_env(self):
        config = MonitorConfig.from_env(
            {
                "THUNDERCLOUD_DB_PATH": "/tmp/tc.duckdb",
                "THUNDERCLOUD_DISTANCES_KM": "25,75",
                "THUNDERCLOUD_CACHE_TTL_SECONDS": "60",
                "THUNDERCLOUD_WEIGHTS": "historical",
                "THUNDERCLOUD_PROJECTION": "great_circle",
                "THUNDERCLOUD_QUIET_HOURS": "20-8",
                "THUNDERCLOUD_UTC_OFFSET_HOURS": "9",
            }
        )

        assert config.db_path == Path("/tmp/tc.duckdb")
        assert config.distances_km == (25.0, 75.0)
        assert config.cache_ttl_seconds == 60
        assert config.weights == "historical"
        assert config.projection == "great_circle"
        assert config.quiet_hours == QuietHours(20, 8, 9.0)

    def test_from_env_invalid_names_variable(self):
        with pytest.raises(ValueError, match="THUNDERCLOUD_BATCH_SIZE"):
            MonitorConfig.from_env({"THUNDERCLOUD_BATCH_SIZE": "lots"})

    @pytest.mark.parametrize(
        "name, value",
        [
            ("THUNDERCLOUD_WEIGHTS", "bogus"),
            ("THUNDERCLOUD_PROJECTION", "bogus"),
            ("THUNDERCLOUD_DISTANCES_KM", "160,50"),
            ("THUNDERCLOUD_THRESHOLD", "1.5"),
            ("THUNDERCLOUD_QUIET_HOURS", "20-25"),
        ],
    )
    def test_from_env_rejected_value_names_variable(self, name, value):
        with pytest.raises(ValueError, match=name):
            MonitorConfig.from_env({name: value})

    def test_unknown_weights_preset(self):
        with pytest.raises(ValueError, match="Unknown weights preset"):
            MonitorConfig(weights="bogus")
