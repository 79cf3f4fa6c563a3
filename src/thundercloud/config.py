"""Runtime configuration for thundercloud monitoring.

All tunables live on a single frozen dataclass. Defaults match the values the
monitoring service has always run with; any of them can be overridden from
``THUNDERCLOUD_*`` environment variables via ``MonitorConfig.from_env()``.
"""

import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from thundercloud.utils.io import get_project_root

DEFAULT_DB_PATH = get_project_root() / "data" / "cache" / "thundercloud.duckdb"

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
USER_AGENT = "ThunderCloudMonitor/1.0"

CHECK_DIRECTIONS = ("north", "south", "east", "west")
CHECK_DISTANCES_KM = (50.0, 160.0, 250.0)

ENV_PREFIX = "THUNDERCLOUD_"


@dataclass(frozen=True)
class QuietHours:
    """Local-time window during which monitoring is suspended.

    The window may wrap midnight (start=20, end=8 covers 20:00 to 07:59).
    """

    start_hour: int
    end_hour: int
    utc_offset_hours: float = 0.0

    def __post_init__(self):
        for name in ("start_hour", "end_hour"):
            value = getattr(self, name)
            if not 0 <= value <= 23:
                raise ValueError(f"{name} must be between 0 and 23, got {value}")

    def contains(self, now_utc: datetime) -> bool:
        """Check whether a naive UTC timestamp falls inside the window."""
        local_hour = (now_utc + timedelta(hours=self.utc_offset_hours)).hour
        if self.start_hour == self.end_hour:
            return False
        if self.start_hour < self.end_hour:
            return self.start_hour <= local_hour < self.end_hour
        return local_hour >= self.start_hour or local_hour < self.end_hour

    @classmethod
    def parse(cls, value: str, utc_offset_hours: float = 0.0) -> "QuietHours":
        """Parse a ``"20-8"`` style window."""
        try:
            start, end = (int(part) for part in value.split("-", 1))
        except ValueError as e:
            raise ValueError(f"Invalid quiet hours '{value}', expected START-END") from e
        return cls(start_hour=start, end_hour=end, utc_offset_hours=utc_offset_hours)


def validate_distances(distances: tuple[float, ...]) -> None:
    """Distances must be non-empty, positive and strictly ascending.

    Mode A relies on ascending order for its early exit and Mode B relies on
    it for tie-breaking, so an unordered list is rejected outright.
    """
    if not distances:
        raise ValueError("At least one check distance is required")
    if distances[0] <= 0:
        raise ValueError(f"Check distances must be positive, got {distances[0]}")
    for previous, current in zip(distances, distances[1:]):
        if current <= previous:
            raise ValueError(
                f"Check distances must be strictly ascending: {list(distances)}"
            )


@dataclass(frozen=True)
class MonitorConfig:
    """Monitoring configuration.

    Attributes:
        directions: Cardinal directions sampled around each user
        distances_km: Sample distances, ascending
        cache_ttl_seconds: Freshness window for cached samples
        cleanup_retention_hours: Age after which cache rows are deleted
        cleanup_batch_size: Max rows deleted per cleanup call
        batch_size: Coordinates per upstream batch request
        batch_delay_seconds: Pause between staged batch requests
        fallback_delay_seconds: Pause between per-point fallback requests
        batch_timeout_seconds: HTTP timeout for batch requests
        single_timeout_seconds: HTTP timeout for single-point requests
        active_user_hours: Users must have updated their location this recently
        thunder_cloud_threshold: totalScore at/above which a cloud is likely
        weights: Scoring weights preset name ('reference', 'historical', 'cloud')
        projection: Projection strategy ('axis_aligned' or 'great_circle')
        quiet_hours: Optional window in which passes are skipped
        db_path: DuckDB cache file
        api_base_url: Upstream forecast endpoint
        user_agent: User-Agent header sent upstream
    """

    directions: tuple[str, ...] = CHECK_DIRECTIONS
    distances_km: tuple[float, ...] = CHECK_DISTANCES_KM
    cache_ttl_seconds: int = 5 * 60
    cleanup_retention_hours: float = 2.0
    cleanup_batch_size: int = 100
    batch_size: int = 100
    batch_delay_seconds: float = 2.0
    fallback_delay_seconds: float = 0.1
    batch_timeout_seconds: float = 60.0
    single_timeout_seconds: float = 10.0
    active_user_hours: float = 24.0
    thunder_cloud_threshold: float = 0.6
    weights: str = "reference"
    projection: str = "axis_aligned"
    quiet_hours: Optional[QuietHours] = None
    db_path: Path = field(default=DEFAULT_DB_PATH)
    api_base_url: str = OPEN_METEO_URL
    user_agent: str = USER_AGENT

    def __post_init__(self):
        validate_distances(self.distances_km)
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.cleanup_batch_size < 1:
            raise ValueError(
                f"cleanup_batch_size must be >= 1, got {self.cleanup_batch_size}"
            )
        if not 0.0 < self.thunder_cloud_threshold <= 1.0:
            raise ValueError(
                f"thunder_cloud_threshold must be in (0, 1], got {self.thunder_cloud_threshold}"
            )
        if self.projection not in ("axis_aligned", "great_circle"):
            raise ValueError(f"Unknown projection strategy: {self.projection}")
        # Deferred: the analysis package imports the cache, which imports this module
        from thundercloud.analysis.analyzer import WEIGHT_PRESETS

        if self.weights not in WEIGHT_PRESETS:
            raise ValueError(
                f"Unknown weights preset: {self.weights}. Must be one of {sorted(WEIGHT_PRESETS)}"
            )

    def with_overrides(self, **changes) -> "MonitorConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "MonitorConfig":
        """Build a config from ``THUNDERCLOUD_*`` environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            MonitorConfig with defaults for any variable not set

        Raises:
            ValueError: If a variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        def read(name, parse, target):
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw == "":
                return
            try:
                value = parse(raw)
                # Every field validates independently of the others
                cls(**{target: value})
            except ValueError as e:
                raise ValueError(f"Invalid {ENV_PREFIX}{name}={raw!r}: {e}") from e
            kwargs[target] = value

        def floats(raw):
            return tuple(float(part) for part in raw.split(","))

        read("DB_PATH", Path, "db_path")
        read("API_URL", str, "api_base_url")
        read("DISTANCES_KM", floats, "distances_km")
        read("CACHE_TTL_SECONDS", int, "cache_ttl_seconds")
        read("CLEANUP_RETENTION_HOURS", float, "cleanup_retention_hours")
        read("CLEANUP_BATCH_SIZE", int, "cleanup_batch_size")
        read("BATCH_SIZE", int, "batch_size")
        read("BATCH_DELAY_SECONDS", float, "batch_delay_seconds")
        read("FALLBACK_DELAY_SECONDS", float, "fallback_delay_seconds")
        read("BATCH_TIMEOUT_SECONDS", float, "batch_timeout_seconds")
        read("SINGLE_TIMEOUT_SECONDS", float, "single_timeout_seconds")
        read("ACTIVE_USER_HOURS", float, "active_user_hours")
        read("THRESHOLD", float, "thunder_cloud_threshold")
        read("WEIGHTS", str, "weights")
        read("PROJECTION", str, "projection")

        quiet = env.get(ENV_PREFIX + "QUIET_HOURS")
        if quiet:
            offset_raw = env.get(ENV_PREFIX + "UTC_OFFSET_HOURS") or "0"
            try:
                offset = float(offset_raw)
            except ValueError as e:
                raise ValueError(
                    f"Invalid {ENV_PREFIX}UTC_OFFSET_HOURS={offset_raw!r}: {e}"
                ) from e
            try:
                kwargs["quiet_hours"] = QuietHours.parse(quiet, utc_offset_hours=offset)
            except ValueError as e:
                raise ValueError(f"Invalid {ENV_PREFIX}QUIET_HOURS={quiet!r}: {e}") from e

        return cls(**kwargs)
