"""Shared utilities for thundercloud."""

from .clock import FrozenClock, utcnow
from .geo import (
    AxisAlignedProjector,
    Direction,
    GeoPoint,
    GreatCircleProjector,
    GridKey,
    ProjectionError,
    SampleCoordinate,
    generate_cache_key,
    get_projector,
    haversine,
    project,
    sample_coordinates,
)
from .io import get_data_path, get_project_root

__all__ = [
    "get_data_path",
    "get_project_root",
    "utcnow",
    "FrozenClock",
    "AxisAlignedProjector",
    "Direction",
    "GeoPoint",
    "GreatCircleProjector",
    "GridKey",
    "ProjectionError",
    "SampleCoordinate",
    "generate_cache_key",
    "get_projector",
    "haversine",
    "project",
    "sample_coordinates",
]
