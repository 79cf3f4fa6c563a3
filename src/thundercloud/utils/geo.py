"""Geographic utilities: points, projection strategies and cache grid keys."""

import math
from dataclasses import dataclass
from enum import Enum
from math import asin, atan2, cos, degrees, radians, sin, sqrt
from typing import Iterable, Optional, Sequence

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0

# Cache grid resolution: 2 decimal degrees (~1.1 km cells)
GRID_PRECISION = 2
_GRID_SCALE = 10**GRID_PRECISION

# Beyond this latitude the east/west offset of the axis-aligned projection
# (distance / cos(lat)) is rejected rather than allowed to blow up.
POLAR_LIMIT_DEG = 89.0


class ProjectionError(ValueError):
    """Raised when a sample point cannot be projected."""


class Direction(str, Enum):
    """Cardinal direction with its compass bearing."""

    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"

    @property
    def bearing_deg(self) -> float:
        return _BEARINGS[self]

    @classmethod
    def parse(cls, value) -> "Direction":
        """Accept a Direction or its lowercase name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise ProjectionError(f"Unknown direction: {value}") from e


_BEARINGS = {
    Direction.NORTH: 0.0,
    Direction.EAST: 90.0,
    Direction.SOUTH: 180.0,
    Direction.WEST: 270.0,
}


@dataclass(frozen=True)
class GeoPoint:
    """Immutable latitude/longitude pair in degrees."""

    lat: float
    lon: float

    def distance_to(self, other: "GeoPoint") -> float:
        """Calculate distance in km to another point using Haversine formula."""
        return haversine(self.lat, self.lon, other.lat, other.lon)

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great circle distance in km between two points.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(min(1.0, sqrt(a)))

    return EARTH_RADIUS_KM * c


# -----------------------------------------------------------------------------
# Cache grid keys
# -----------------------------------------------------------------------------


def _quantize(value: float) -> int:
    # Round half up, matching the rounding the cache keys were built with
    return math.floor(value * _GRID_SCALE + 0.5)


@dataclass(frozen=True, order=True)
class GridKey:
    """Coordinate quantized to the cache grid, as integer 1/100-degree units.

    Used directly as a dict key for deduplication; ``str(key)`` gives the
    canonical string stored in the cache table.
    """

    lat_e2: int
    lon_e2: int

    @classmethod
    def from_coordinates(cls, lat: float, lon: float) -> "GridKey":
        return cls(_quantize(lat), _quantize(lon))

    @classmethod
    def from_point(cls, point: GeoPoint) -> "GridKey":
        return cls.from_coordinates(point.lat, point.lon)

    @property
    def lat(self) -> float:
        return self.lat_e2 / _GRID_SCALE

    @property
    def lon(self) -> float:
        return self.lon_e2 / _GRID_SCALE

    def label(self, prefix: str = "weather") -> str:
        return f"{prefix}_{self.lat:.{GRID_PRECISION}f}_{self.lon:.{GRID_PRECISION}f}"

    def __str__(self) -> str:
        return self.label()


def generate_cache_key(lat: float, lon: float) -> str:
    """Canonical cache key for a coordinate, e.g. ``weather_35.68_139.77``."""
    return str(GridKey.from_coordinates(lat, lon))


# -----------------------------------------------------------------------------
# Projection strategies
# -----------------------------------------------------------------------------


class AxisAlignedProjector:
    """Cheap flat-earth projection that only moves along one axis.

    North/south shift latitude by ``distance / 111`` degrees; east/west shift
    longitude by ``distance / (111 * cos(lat))`` degrees. A "north" query
    never changes longitude and an "east" query never changes latitude.
    """

    name = "axis_aligned"

    def __init__(self, polar_limit_deg: float = POLAR_LIMIT_DEG):
        self.polar_limit_deg = polar_limit_deg

    def project(self, origin: GeoPoint, direction, distance_km: float) -> GeoPoint:
        direction = Direction.parse(direction)
        if distance_km == 0:
            return origin

        lat_offset = 0.0
        lon_offset = 0.0

        if direction is Direction.NORTH:
            lat_offset = distance_km / KM_PER_DEGREE_LAT
        elif direction is Direction.SOUTH:
            lat_offset = -distance_km / KM_PER_DEGREE_LAT
        else:
            if abs(origin.lat) > self.polar_limit_deg:
                raise ProjectionError(
                    f"Cannot project {direction.value} from latitude {origin.lat}: "
                    f"beyond polar limit {self.polar_limit_deg}"
                )
            lon_offset = distance_km / (KM_PER_DEGREE_LAT * cos(radians(origin.lat)))
            if direction is Direction.WEST:
                lon_offset = -lon_offset

        return GeoPoint(origin.lat + lat_offset, origin.lon + lon_offset)


class GreatCircleProjector:
    """Destination-point projection along a compass bearing on a sphere."""

    name = "great_circle"

    def __init__(self, radius_km: float = EARTH_RADIUS_KM):
        self.radius_km = radius_km

    def project(self, origin: GeoPoint, direction, distance_km: float) -> GeoPoint:
        direction = Direction.parse(direction)
        if distance_km == 0:
            return origin

        bearing = radians(direction.bearing_deg)
        angular = distance_km / self.radius_km
        lat1 = radians(origin.lat)
        lon1 = radians(origin.lon)

        lat2 = asin(
            sin(lat1) * cos(angular) + cos(lat1) * sin(angular) * cos(bearing)
        )
        lon2 = lon1 + atan2(
            sin(bearing) * sin(angular) * cos(lat1),
            cos(angular) - sin(lat1) * sin(lat2),
        )

        lon_deg = (degrees(lon2) + 540.0) % 360.0 - 180.0
        return GeoPoint(degrees(lat2), lon_deg)


_PROJECTORS = {
    AxisAlignedProjector.name: AxisAlignedProjector,
    GreatCircleProjector.name: GreatCircleProjector,
}


def get_projector(name: str):
    """Instantiate a projection strategy by name."""
    try:
        return _PROJECTORS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown projection strategy: {name}. Must be one of {sorted(_PROJECTORS)}"
        ) from None


def project(origin: GeoPoint, direction, distance_km: float, strategy: str = "axis_aligned") -> GeoPoint:
    """Project a point using the named strategy."""
    return get_projector(strategy).project(origin, direction, distance_km)


# -----------------------------------------------------------------------------
# Sample coordinates
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SampleCoordinate:
    """A projected sample point around an origin.

    Attributes:
        origin: The user location the sample was projected from
        direction: Cardinal direction of the sample
        distance_km: Distance from the origin
        point: Projected coordinate
        owner_id: Optional reference to whoever requested the sample
    """

    origin: GeoPoint
    direction: Direction
    distance_km: float
    point: GeoPoint
    owner_id: Optional[str] = None

    @property
    def key(self) -> GridKey:
        return GridKey.from_point(self.point)


def sample_coordinates(
    origin: GeoPoint,
    projector,
    directions: Iterable = tuple(Direction),
    distances_km: Sequence[float] = (50.0, 160.0, 250.0),
    owner_id: Optional[str] = None,
) -> list[SampleCoordinate]:
    """Expand an origin into one sample per direction and distance.

    Samples are ordered direction-major, ascending distance within a
    direction. All samples of one call use the same projector.
    """
    samples = []
    for direction in directions:
        direction = Direction.parse(direction)
        for distance in distances_km:
            samples.append(
                SampleCoordinate(
                    origin=origin,
                    direction=direction,
                    distance_km=distance,
                    point=projector.project(origin, direction, distance),
                    owner_id=owner_id,
                )
            )
    return samples
