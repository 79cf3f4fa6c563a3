"""Pydantic schemas for API request/response validation."""

from typing import Optional

from pydantic import BaseModel, Field

COORDINATE_BOUNDS = {
    "lat_min": -90.0,
    "lat_max": 90.0,
    "lon_min": -180.0,
    "lon_max": 180.0,
}


class LocationInfo(BaseModel):
    lat: float
    lon: float


class AtmosphericSampleSchema(BaseModel):
    """Atmospheric parameters at one coordinate."""

    cape: float = Field(..., description="Convective available potential energy (J/kg)")
    lifted_index: float = Field(..., description="Lifted index")
    convective_inhibition: float = Field(..., description="Convective inhibition (J/kg)")
    temperature: float = Field(..., description="2m temperature (C)")
    cloud_cover: float = Field(..., description="Total cloud cover (%)")
    cloud_cover_mid: float = Field(..., description="Mid-level cloud cover (%)")
    cloud_cover_high: float = Field(..., description="High-level cloud cover (%)")


class AnalysisSchema(BaseModel):
    """Thundercloud likelihood scores.

    Attributes:
        total_score: Weighted sum of the sub-scores (0-1)
        risk_level: 'low', 'moderate' or 'high'
        is_thunder_cloud_likely: total_score at or above the threshold
        confidence: Distance of total_score from the threshold (0-1)
    """

    cape_score: float = Field(..., ge=0, le=1)
    li_score: float = Field(..., ge=0, le=1)
    cin_score: float = Field(..., ge=0, le=1)
    temp_score: float = Field(..., ge=0, le=1)
    cloud_score: float = Field(..., ge=0, le=1)
    total_score: float = Field(..., ge=0, le=1)
    risk_level: str
    is_thunder_cloud_likely: bool
    confidence: float = Field(..., ge=0, le=1)


class PointWeatherResponse(BaseModel):
    """Sample and analysis for a single coordinate."""

    location: LocationInfo
    cache_key: str = Field(..., description="Cache grid cell of the coordinate")
    source: str = Field(..., description="'cache', 'upstream' or 'default'")
    sample: AtmosphericSampleSchema
    analysis: AnalysisSchema

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "location": {"lat": 35.68, "lon": 139.77},
                    "cache_key": "weather_35.68_139.77",
                    "source": "upstream",
                    "sample": {
                        "cape": 1200.0,
                        "lifted_index": -3.5,
                        "convective_inhibition": 10.0,
                        "temperature": 31.0,
                        "cloud_cover": 60.0,
                        "cloud_cover_mid": 40.0,
                        "cloud_cover_high": 20.0,
                    },
                    "analysis": {
                        "cape_score": 0.567,
                        "li_score": 0.583,
                        "cin_score": 1.0,
                        "temp_score": 1.0,
                        "cloud_score": 0.7,
                        "total_score": 0.637,
                        "risk_level": "high",
                        "is_thunder_cloud_likely": True,
                        "confidence": 0.092,
                    },
                }
            ]
        }
    }


class DistanceSummary(BaseModel):
    distance_km: float
    total_score: float
    is_thunder_cloud_likely: bool


class DirectionReport(BaseModel):
    """Representative result for one direction.

    The selected distance's fields are absent when the direction was not
    evaluated (quiet hours).
    """

    direction: str
    triggered: bool
    evaluated: list[DistanceSummary] = Field(default_factory=list)
    distance_km: Optional[float] = None
    coordinates: Optional[LocationInfo] = None
    sample: Optional[AtmosphericSampleSchema] = None
    analysis: Optional[AnalysisSchema] = None


class DirectionalWeatherResponse(BaseModel):
    location: LocationInfo
    generated_at: str
    quiet_hours: bool = False
    directions: dict[str, DirectionReport]


class CacheStatsResponse(BaseModel):
    """Cache statistics."""

    total_entries: int
    fresh_entries: int
    recent_entries: int
    stale_entries: int
    directional_entries: int
    retention_hours: float
    cleanup_batch_size: int
    ttl_seconds: int
    db_path: str
    timestamp: str


class HealthResponse(BaseModel):
    """Health check response.

    Attributes:
        status: Service status ('healthy' or 'degraded')
        database_ok: Whether the cache database answered a query
        version: API version
    """

    status: str = Field(
        default="healthy",
        description="Service status",
    )
    database_ok: bool = Field(
        default=False,
        description="Whether the cache database is reachable",
    )
    version: str = Field(
        default="1.0.0",
        description="API version",
    )


class ErrorResponse(BaseModel):
    """Error response schema.

    Attributes:
        error: Error type/code
        message: Human-readable error message
        detail: Additional error details
    """

    error: str = Field(
        ...,
        description="Error type",
    )
    message: str = Field(
        ...,
        description="Error message",
    )
    detail: Optional[str] = Field(
        default=None,
        description="Additional details",
    )
