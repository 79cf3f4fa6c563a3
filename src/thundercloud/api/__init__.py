"""HTTP API for thundercloud.

This module provides:

- create_app: Factory function to create FastAPI application
- PointWeatherResponse / DirectionalWeatherResponse: Response schemas

Note: create_app is lazy-loaded so the schemas can be imported without
building the default application.
"""

# Schemas can be imported directly (only depend on pydantic)
from thundercloud.api.schemas import (
    CacheStatsResponse,
    DirectionalWeatherResponse,
    ErrorResponse,
    HealthResponse,
    PointWeatherResponse,
)


def __getattr__(name):
    """Lazy load FastAPI-dependent components."""
    if name == "create_app":
        from thundercloud.api.app import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "create_app",
    "CacheStatsResponse",
    "DirectionalWeatherResponse",
    "ErrorResponse",
    "HealthResponse",
    "PointWeatherResponse",
]
