"""Cache-aside weather store.

WeatherCache sits in front of the DuckDB CacheDatabase and decides
freshness. A stored sample is only served while it is younger than the TTL;
older rows stay on disk until ``cleanup`` removes them after the (longer)
retention window.

Store failures never abort a monitoring pass: a failed read is reported as a
miss and a failed write is logged and dropped.
"""

import logging
from datetime import timedelta
from typing import Optional

import duckdb

from thundercloud.cache.database import CacheDatabase
from thundercloud.cache.models import AtmosphericSample
from thundercloud.utils.clock import Clock, utcnow
from thundercloud.utils.geo import GeoPoint, GridKey

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_RETENTION_HOURS = 2.0
DEFAULT_CLEANUP_BATCH_SIZE = 100

DIRECTIONAL_PREFIX = "directional"


class WeatherCache:
    """Freshness-aware cache of atmospheric samples and directional reports.

    Example:
        >>> cache = WeatherCache(CacheDatabase())
        >>> cache.set(GeoPoint(35.68, 139.77), sample)
        >>> cache.get(GeoPoint(35.681, 139.767))
        AtmosphericSample(...)
    """

    def __init__(
        self,
        db: CacheDatabase,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        retention_hours: float = DEFAULT_RETENTION_HOURS,
        cleanup_batch_size: int = DEFAULT_CLEANUP_BATCH_SIZE,
        clock: Optional[Clock] = None,
    ):
        self.db = db
        self.ttl = timedelta(seconds=ttl_seconds)
        self.retention_hours = retention_hours
        self.cleanup_batch_size = cleanup_batch_size
        self.clock = clock or utcnow

    def _is_fresh(self, stored_at) -> bool:
        return self.clock() - stored_at < self.ttl

    # -------------------------------------------------------------------------
    # Samples
    # -------------------------------------------------------------------------

    def get(self, point: GeoPoint) -> Optional[AtmosphericSample]:
        """Return the cached sample for the point's grid cell if still fresh.

        Returns None on a miss, on a stale entry, and on any store error.
        """
        key = str(GridKey.from_point(point))
        try:
            entry = self.db.get_entry(key)
        except duckdb.Error as e:
            logger.error(f"Cache read failed for {key}, treating as miss: {e}")
            return None

        if entry is None:
            logger.debug(f"Cache MISS: {key}")
            return None
        if not self._is_fresh(entry.stored_at):
            logger.debug(f"Cache STALE: {key} (stored {entry.stored_at})")
            return None

        logger.debug(f"Cache HIT: {key}")
        return entry.sample

    def set(self, point: GeoPoint, sample: AtmosphericSample) -> bool:
        """Upsert a sample for the point's grid cell.

        Returns:
            True if the write succeeded
        """
        key = GridKey.from_point(point)
        try:
            self.db.store_entry(
                str(key),
                key.lat_e2,
                key.lon_e2,
                point.lat,
                point.lon,
                sample,
                self.clock(),
            )
        except duckdb.Error as e:
            logger.error(f"Cache write failed for {key}: {e}")
            return False
        return True

    # -------------------------------------------------------------------------
    # Directional reports
    # -------------------------------------------------------------------------

    def get_directional(self, point: GeoPoint) -> Optional[dict]:
        """Return the fresh directional report stored for a location, if any."""
        key = GridKey.from_point(point).label(DIRECTIONAL_PREFIX)
        try:
            found = self.db.get_directional(key)
        except duckdb.Error as e:
            logger.error(f"Directional cache read failed for {key}: {e}")
            return None

        if found is None:
            logger.debug(f"Directional cache MISS: {key}")
            return None
        payload, stored_at = found
        if not self._is_fresh(stored_at):
            logger.debug(f"Directional cache STALE: {key}")
            return None

        logger.debug(f"Directional cache HIT: {key}")
        return payload

    def set_directional(self, point: GeoPoint, payload: dict) -> bool:
        key = GridKey.from_point(point).label(DIRECTIONAL_PREFIX)
        try:
            self.db.store_directional(key, point.lat, point.lon, payload, self.clock())
        except duckdb.Error as e:
            logger.error(f"Directional cache write failed for {key}: {e}")
            return False
        return True

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def cleanup(
        self,
        retention_hours: Optional[float] = None,
        batch_size: Optional[int] = None,
    ) -> int:
        """Delete rows older than the retention window, oldest first.

        At most ``batch_size`` rows are removed per call, counting both
        tables. The cutoff never falls inside the freshness TTL, so a fresh
        entry is never deleted even if a tiny retention is requested.

        Returns:
            Number of rows deleted
        """
        retention_hours = self.retention_hours if retention_hours is None else retention_hours
        batch_size = self.cleanup_batch_size if batch_size is None else batch_size

        window = max(timedelta(hours=retention_hours), self.ttl)
        cutoff = self.clock() - window

        deleted = 0
        try:
            deleted += self.db.delete_entries_before(cutoff, batch_size)
            deleted += self.db.delete_directional_before(cutoff, batch_size - deleted)
        except duckdb.Error as e:
            logger.error(f"Cache cleanup failed after {deleted} deletions: {e}")

        if deleted:
            logger.info(f"Cache cleanup removed {deleted} entries older than {cutoff}")
        return deleted

    def log_fetch(
        self,
        source: str,
        status: str,
        records_added: int,
        duration_ms: int,
        error_message: Optional[str] = None,
    ) -> None:
        """Record an upstream fetch. Failures to record are logged only."""
        try:
            self.db.log_fetch(
                source,
                status,
                records_added,
                duration_ms,
                error_message=error_message,
                timestamp=self.clock(),
            )
        except duckdb.Error as e:
            logger.error(f"Failed to record fetch log entry: {e}")

    def stats(self) -> dict:
        """Summary counts for monitoring. Store errors propagate."""
        now = self.clock()
        return {
            "total_entries": self.db.count_entries(),
            "fresh_entries": self.db.count_entries(since=now - self.ttl),
            "recent_entries": self.db.count_entries(since=now - timedelta(hours=1)),
            "stale_entries": self.db.count_entries(
                before=now - timedelta(hours=self.retention_hours)
            ),
            "directional_entries": self.db.count_directional(),
            "retention_hours": self.retention_hours,
            "cleanup_batch_size": self.cleanup_batch_size,
            "ttl_seconds": int(self.ttl.total_seconds()),
            "db_path": str(self.db.db_path),
            "timestamp": now.isoformat(),
        }
