"""Data models for cache layer."""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any, Mapping, Optional

# Values substituted for anything the upstream provider leaves out
SAMPLE_DEFAULTS = {
    "cape": 0.0,
    "lifted_index": 0.0,
    "convective_inhibition": 0.0,
    "temperature": 20.0,
    "cloud_cover": 0.0,
    "cloud_cover_mid": 0.0,
    "cloud_cover_high": 0.0,
}


@dataclass(frozen=True)
class AtmosphericSample:
    """Atmospheric parameters for one coordinate.

    Never holds None: missing fields are normalized to SAMPLE_DEFAULTS.
    """

    cape: float = SAMPLE_DEFAULTS["cape"]
    lifted_index: float = SAMPLE_DEFAULTS["lifted_index"]
    convective_inhibition: float = SAMPLE_DEFAULTS["convective_inhibition"]
    temperature: float = SAMPLE_DEFAULTS["temperature"]
    cloud_cover: float = SAMPLE_DEFAULTS["cloud_cover"]
    cloud_cover_mid: float = SAMPLE_DEFAULTS["cloud_cover_mid"]
    cloud_cover_high: float = SAMPLE_DEFAULTS["cloud_cover_high"]

    @classmethod
    def default(cls) -> "AtmosphericSample":
        """Sample used when no upstream data is available."""
        return cls()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AtmosphericSample":
        """Build a sample from a dict, defaulting missing or unparseable values."""
        values = {}
        for f in fields(cls):
            values[f.name] = _as_float(data.get(f.name), SAMPLE_DEFAULTS[f.name])
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)


def _as_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class CacheEntry:
    """Cached sample for one grid cell."""

    key: str
    lat: float
    lon: float
    sample: AtmosphericSample
    stored_at: datetime


@dataclass
class FetchLog:
    """Log entry for upstream fetches."""

    source: str  # 'open-meteo:staged'
    timestamp: datetime
    status: str  # 'success', 'partial', 'error'
    records_added: int
    duration_ms: int
    error_message: Optional[str] = None
