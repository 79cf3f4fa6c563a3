"""DuckDB cache database for thundercloud."""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import duckdb

from thundercloud.cache.models import AtmosphericSample, CacheEntry, FetchLog
from thundercloud.config import DEFAULT_DB_PATH
from thundercloud.utils.clock import utcnow

logger = logging.getLogger(__name__)

SAMPLE_COLUMNS = (
    "cape",
    "lifted_index",
    "convective_inhibition",
    "temperature",
    "cloud_cover",
    "cloud_cover_mid",
    "cloud_cover_high",
)

# SQL schema - DuckDB uses sequences for auto-increment.
# No index on stored_at: DuckDB cannot ON CONFLICT UPDATE an indexed column.
SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS seq_fetch_log_id START 1;

-- Per-grid-cell atmospheric samples
CREATE TABLE IF NOT EXISTS weather_cache (
    cache_key VARCHAR PRIMARY KEY,
    grid_lat INTEGER NOT NULL,
    grid_lon INTEGER NOT NULL,
    latitude DOUBLE NOT NULL,
    longitude DOUBLE NOT NULL,
    cape DOUBLE,
    lifted_index DOUBLE,
    convective_inhibition DOUBLE,
    temperature DOUBLE,
    cloud_cover DOUBLE,
    cloud_cover_mid DOUBLE,
    cloud_cover_high DOUBLE,
    stored_at TIMESTAMP NOT NULL
);

-- Per-location directional reports
CREATE TABLE IF NOT EXISTS directional_cache (
    location_key VARCHAR PRIMARY KEY,
    latitude DOUBLE NOT NULL,
    longitude DOUBLE NOT NULL,
    payload VARCHAR NOT NULL,
    stored_at TIMESTAMP NOT NULL
);

-- Fetch log for debugging/monitoring
CREATE TABLE IF NOT EXISTS fetch_log (
    id INTEGER DEFAULT nextval('seq_fetch_log_id') PRIMARY KEY,
    source VARCHAR NOT NULL,
    timestamp TIMESTAMP NOT NULL,
    status VARCHAR NOT NULL,
    records_added INTEGER,
    duration_ms INTEGER,
    error_message VARCHAR
);

CREATE INDEX IF NOT EXISTS idx_fetch_log_time ON fetch_log(timestamp);
"""


class CacheDatabase:
    """DuckDB cache database manager.

    Stores atmospheric samples keyed by grid cell, directional reports keyed
    by user location, and a log of upstream fetches. Timestamps are naive UTC
    and always supplied by the caller, so freshness is decided by whoever
    owns the clock.

    Example:
        >>> db = CacheDatabase()
        >>> db.get_entry("weather_35.68_139.77")
        CacheEntry(...)
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: Path to DuckDB file. Creates if doesn't exist.
        """
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._init_schema()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get database connection (lazy initialization with retry)."""
        if self._conn is None:
            self._conn = self._connect_with_retry()
        return self._conn

    def _connect_with_retry(self, max_retries: int = 3) -> duckdb.DuckDBPyConnection:
        """Connect to database with retry logic for lock handling."""
        last_error = None
        for attempt in range(max_retries):
            try:
                return duckdb.connect(str(self.db_path))
            except duckdb.IOException as e:
                last_error = e
                if "lock" in str(e).lower() and attempt < max_retries - 1:
                    wait_time = 0.5 * (2 ** attempt)  # Exponential backoff
                    logger.warning(f"Database locked, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    raise
        raise last_error

    def _init_schema(self) -> None:
        """Initialize database schema."""
        for statement in SCHEMA_SQL.split(";"):
            statement = statement.strip()
            if statement:
                self.conn.execute(statement)
        logger.info(f"Cache database initialized at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -------------------------------------------------------------------------
    # Sample Cache Operations
    # -------------------------------------------------------------------------

    def get_entry(self, cache_key: str) -> Optional[CacheEntry]:
        """Get the cached sample for a grid cell, regardless of age.

        Args:
            cache_key: Canonical grid key

        Returns:
            CacheEntry if present, None otherwise
        """
        result = self.conn.execute(
            f"""
            SELECT cache_key, latitude, longitude, {", ".join(SAMPLE_COLUMNS)}, stored_at
            FROM weather_cache
            WHERE cache_key = ?
            """,
            [cache_key],
        ).fetchone()

        if result is None:
            return None

        values = dict(zip(SAMPLE_COLUMNS, result[3:10]))
        return CacheEntry(
            key=result[0],
            lat=result[1],
            lon=result[2],
            sample=AtmosphericSample.from_mapping(values),
            stored_at=result[10],
        )

    def store_entry(
        self,
        cache_key: str,
        grid_lat: int,
        grid_lon: int,
        lat: float,
        lon: float,
        sample: AtmosphericSample,
        stored_at: datetime,
    ) -> None:
        """Upsert a sample, replacing any previous value and timestamp.

        Args:
            cache_key: Canonical grid key
            grid_lat: Quantized latitude (1/100 degree units)
            grid_lon: Quantized longitude (1/100 degree units)
            lat: Latitude the sample was fetched for
            lon: Longitude the sample was fetched for
            sample: Atmospheric sample
            stored_at: Naive UTC write time
        """
        self.conn.execute(
            f"""
            INSERT INTO weather_cache
            (cache_key, grid_lat, grid_lon, latitude, longitude,
             {", ".join(SAMPLE_COLUMNS)}, stored_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (cache_key)
            DO UPDATE SET
                latitude = EXCLUDED.latitude,
                longitude = EXCLUDED.longitude,
                cape = EXCLUDED.cape,
                lifted_index = EXCLUDED.lifted_index,
                convective_inhibition = EXCLUDED.convective_inhibition,
                temperature = EXCLUDED.temperature,
                cloud_cover = EXCLUDED.cloud_cover,
                cloud_cover_mid = EXCLUDED.cloud_cover_mid,
                cloud_cover_high = EXCLUDED.cloud_cover_high,
                stored_at = EXCLUDED.stored_at
            """,
            [
                cache_key,
                grid_lat,
                grid_lon,
                lat,
                lon,
                *(getattr(sample, column) for column in SAMPLE_COLUMNS),
                stored_at,
            ],
        )

    def delete_entries_before(self, cutoff: datetime, limit: int) -> int:
        """Delete up to ``limit`` samples stored before ``cutoff``, oldest first.

        Returns:
            Number of rows deleted
        """
        if limit <= 0:
            return 0
        result = self.conn.execute(
            f"""
            DELETE FROM weather_cache
            WHERE cache_key IN (
                SELECT cache_key FROM weather_cache
                WHERE stored_at < ?
                ORDER BY stored_at
                LIMIT {int(limit)}
            )
            """,
            [cutoff],
        )
        row = result.fetchone()
        return row[0] if row else 0

    def count_entries(
        self,
        since: Optional[datetime] = None,
        before: Optional[datetime] = None,
    ) -> int:
        """Count samples, optionally restricted to a stored_at range."""
        query = "SELECT COUNT(*) FROM weather_cache WHERE 1 = 1"
        params = []
        if since is not None:
            query += " AND stored_at >= ?"
            params.append(since)
        if before is not None:
            query += " AND stored_at < ?"
            params.append(before)
        return self.conn.execute(query, params).fetchone()[0]

    # -------------------------------------------------------------------------
    # Directional Report Operations
    # -------------------------------------------------------------------------

    def get_directional(self, location_key: str) -> Optional[tuple[dict, datetime]]:
        """Get a stored directional report and its write time."""
        result = self.conn.execute(
            "SELECT payload, stored_at FROM directional_cache WHERE location_key = ?",
            [location_key],
        ).fetchone()

        if result is None:
            return None
        return json.loads(result[0]), result[1]

    def store_directional(
        self,
        location_key: str,
        lat: float,
        lon: float,
        payload: dict,
        stored_at: datetime,
    ) -> None:
        """Upsert a directional report for a location."""
        self.conn.execute(
            """
            INSERT INTO directional_cache (location_key, latitude, longitude, payload, stored_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (location_key)
            DO UPDATE SET
                latitude = EXCLUDED.latitude,
                longitude = EXCLUDED.longitude,
                payload = EXCLUDED.payload,
                stored_at = EXCLUDED.stored_at
            """,
            [location_key, lat, lon, json.dumps(payload), stored_at],
        )

    def delete_directional_before(self, cutoff: datetime, limit: int) -> int:
        """Delete up to ``limit`` directional reports stored before ``cutoff``."""
        if limit <= 0:
            return 0
        result = self.conn.execute(
            f"""
            DELETE FROM directional_cache
            WHERE location_key IN (
                SELECT location_key FROM directional_cache
                WHERE stored_at < ?
                ORDER BY stored_at
                LIMIT {int(limit)}
            )
            """,
            [cutoff],
        )
        row = result.fetchone()
        return row[0] if row else 0

    def count_directional(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM directional_cache").fetchone()[0]

    # -------------------------------------------------------------------------
    # Logging Operations
    # -------------------------------------------------------------------------

    def log_fetch(
        self,
        source: str,
        status: str,
        records_added: int,
        duration_ms: int,
        error_message: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Log an upstream fetch operation."""
        self.conn.execute(
            """
            INSERT INTO fetch_log (source, timestamp, status, records_added, duration_ms, error_message)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                source,
                timestamp or utcnow(),
                status,
                records_added,
                duration_ms,
                error_message[:500] if error_message else None,
            ],
        )

    def get_recent_fetches(self, limit: int = 10) -> list[FetchLog]:
        """Most recent fetch log entries, newest first."""
        results = self.conn.execute(
            f"""
            SELECT source, timestamp, status, records_added, duration_ms, error_message
            FROM fetch_log
            ORDER BY timestamp DESC, id DESC
            LIMIT {int(limit)}
            """
        ).fetchall()

        return [
            FetchLog(
                source=row[0],
                timestamp=row[1],
                status=row[2],
                records_added=row[3] or 0,
                duration_ms=row[4] or 0,
                error_message=row[5],
            )
            for row in results
        ]
