"""Data caching layer for thundercloud.

Provides persistent caching of atmospheric samples and directional reports
using DuckDB.

Expired rows can be removed via:
    python -m thundercloud.monitoring.run --cleanup
"""

from thundercloud.cache.cleanup import CleanupResult, drain_expired
from thundercloud.cache.database import CacheDatabase
from thundercloud.cache.models import SAMPLE_DEFAULTS, AtmosphericSample, CacheEntry, FetchLog
from thundercloud.cache.weather import WeatherCache

__all__ = [
    "AtmosphericSample",
    "CacheDatabase",
    "CacheEntry",
    "CleanupResult",
    "FetchLog",
    "SAMPLE_DEFAULTS",
    "WeatherCache",
    "drain_expired",
]
