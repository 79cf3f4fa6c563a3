"""Open-Meteo forecast client.

Fetches the convective parameters for one or many coordinates and normalizes
the response into AtmosphericSample objects.

Open-Meteo answers a multi-coordinate request in more than one shape
depending on version and endpoint: hourly fields may come back as a flat
array (single location) or an array of arrays (one per location), the
current temperature as a scalar or an array, and newer endpoints return a
top-level JSON list with one object per location. Each field is resolved
once into a ``Scalar`` or ``PerPoint`` value and then read by index.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Union

import requests

from thundercloud.cache.models import AtmosphericSample
from thundercloud.config import OPEN_METEO_URL, USER_AGENT
from thundercloud.utils.geo import GeoPoint

logger = logging.getLogger(__name__)

HOURLY_FIELDS = (
    "cape",
    "lifted_index",
    "convective_inhibition",
    "cloud_cover",
    "cloud_cover_mid",
    "cloud_cover_high",
)
CURRENT_FIELDS = {"temperature_2m": "temperature"}

BATCH_TIMEOUT = 60.0
SINGLE_TIMEOUT = 10.0


class FetchErrorKind(Enum):
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    NETWORK = "network"
    RESPONSE_SHAPE = "response_shape"
    UNKNOWN = "unknown"


class WeatherFetchError(Exception):
    """Upstream fetch failed.

    Attributes:
        kind: Failure class, for diagnostics
        status_code: HTTP status when kind is HTTP_STATUS
        point_count: Number of coordinates in the failed request
    """

    def __init__(
        self,
        message: str,
        kind: FetchErrorKind = FetchErrorKind.UNKNOWN,
        status_code: Optional[int] = None,
        point_count: int = 0,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.point_count = point_count


# -----------------------------------------------------------------------------
# Response parsing
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Scalar:
    """Field value shared by every point in the response."""

    value: Any

    def at(self, index: int) -> Any:
        return self.value


@dataclass(frozen=True)
class PerPoint:
    """Field value with one entry per point."""

    values: tuple

    def at(self, index: int) -> Any:
        if index < len(self.values):
            return self.values[index]
        return None


FieldValue = Union[Scalar, PerPoint]


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def resolve_hourly(raw: Any) -> FieldValue:
    """Resolve an hourly series to the value of its first hour per point."""
    if isinstance(raw, list):
        if any(isinstance(item, list) for item in raw):
            return PerPoint(tuple(_first(item) for item in raw))
        return Scalar(_first(raw))
    return Scalar(raw)


def resolve_current(raw: Any) -> FieldValue:
    if isinstance(raw, list):
        return PerPoint(tuple(raw))
    return Scalar(raw)


def _resolve_fields(payload: dict) -> dict[str, FieldValue]:
    hourly = payload.get("hourly")
    if not isinstance(hourly, dict):
        raise WeatherFetchError(
            "Response has no hourly block", kind=FetchErrorKind.RESPONSE_SHAPE
        )
    current = payload.get("current") or {}
    if not isinstance(current, dict):
        current = {}

    fields = {name: resolve_hourly(hourly.get(name)) for name in HOURLY_FIELDS}
    for upstream, name in CURRENT_FIELDS.items():
        fields[name] = resolve_current(current.get(upstream))
    return fields


def _sample_at(fields: dict[str, FieldValue], index: int) -> AtmosphericSample:
    return AtmosphericSample.from_mapping({name: value.at(index) for name, value in fields.items()})


def parse_response(payload: Any, expected: int) -> list[AtmosphericSample]:
    """Normalize an upstream response into exactly ``expected`` samples.

    Missing fields become defaults. If the response covers a different
    number of points than requested, the mismatch is logged and the result
    is truncated or padded with default samples.

    Raises:
        WeatherFetchError: If the payload is not a forecast response at all
    """
    if isinstance(payload, list):
        # Non-object entries keep their slot so later samples stay aligned
        samples = [
            _sample_at(_resolve_fields(item), 0) if isinstance(item, dict) else AtmosphericSample.default()
            for item in payload
        ]
        returned = len(samples)
    elif isinstance(payload, dict):
        fields = _resolve_fields(payload)
        latitudes = payload.get("latitude")
        returned = len(latitudes) if isinstance(latitudes, list) else 1
        samples = [_sample_at(fields, i) for i in range(min(returned, expected))]
    else:
        raise WeatherFetchError(
            f"Unexpected response type: {type(payload).__name__}",
            kind=FetchErrorKind.RESPONSE_SHAPE,
            point_count=expected,
        )

    if returned != expected:
        logger.warning(f"Point count mismatch: requested {expected}, received {returned}")

    samples = samples[:expected]
    while len(samples) < expected:
        samples.append(AtmosphericSample.default())
    return samples


# -----------------------------------------------------------------------------
# Fetcher
# -----------------------------------------------------------------------------


def build_params(points: Sequence[GeoPoint]) -> dict:
    """Query parameters for a forecast request covering ``points``."""
    return {
        "latitude": ",".join(f"{p.lat:.6f}" for p in points),
        "longitude": ",".join(f"{p.lon:.6f}" for p in points),
        "hourly": ",".join(HOURLY_FIELDS),
        "current": ",".join(CURRENT_FIELDS),
        "timezone": "auto",
        "forecast_days": 1,
    }


class WeatherFetcher:
    """Client for the Open-Meteo forecast endpoint.

    Example:
        >>> fetcher = WeatherFetcher()
        >>> fetcher.fetch_single(GeoPoint(35.68, 139.77))
        AtmosphericSample(cape=..., ...)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = OPEN_METEO_URL,
        user_agent: str = USER_AGENT,
        batch_timeout: float = BATCH_TIMEOUT,
        single_timeout: float = SINGLE_TIMEOUT,
    ):
        self.session = session or requests.Session()
        self.base_url = base_url
        self.headers = {"User-Agent": user_agent}
        self.batch_timeout = batch_timeout
        self.single_timeout = single_timeout

    def _request(self, points: Sequence[GeoPoint], timeout: float) -> Any:
        """Issue one GET and return the decoded JSON body.

        Raises:
            WeatherFetchError: classified by failure kind
        """
        count = len(points)
        try:
            response = self.session.get(
                self.base_url,
                params=build_params(points),
                headers=self.headers,
                timeout=timeout,
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise WeatherFetchError(
                f"Timed out after {timeout}s for {count} points",
                kind=FetchErrorKind.TIMEOUT,
                point_count=count,
            ) from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise WeatherFetchError(
                f"HTTP {status} for {count} points",
                kind=FetchErrorKind.HTTP_STATUS,
                status_code=status,
                point_count=count,
            ) from e
        except requests.ConnectionError as e:
            raise WeatherFetchError(
                f"Network error for {count} points: {e}",
                kind=FetchErrorKind.NETWORK,
                point_count=count,
            ) from e
        except requests.RequestException as e:
            raise WeatherFetchError(
                f"Request failed for {count} points: {e}",
                kind=FetchErrorKind.UNKNOWN,
                point_count=count,
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise WeatherFetchError(
                f"Response is not valid JSON: {e}",
                kind=FetchErrorKind.RESPONSE_SHAPE,
                point_count=count,
            ) from e

    def fetch_batch(self, points: Sequence[GeoPoint]) -> list[AtmosphericSample]:
        """Fetch samples for many points in one request.

        Returns:
            One sample per input point, in input order

        Raises:
            WeatherFetchError: On any upstream failure
        """
        if not points:
            return []

        start = time.time()
        try:
            payload = self._request(points, self.batch_timeout)
            samples = parse_response(payload, len(points))
        except WeatherFetchError as e:
            logger.error(f"Batch fetch failed ({e.kind.value}, {e.point_count} points): {e}")
            raise

        duration = time.time() - start
        logger.info(f"Fetched {len(points)} points in {duration:.1f}s")
        return samples

    def fetch_single(self, point: GeoPoint) -> Optional[AtmosphericSample]:
        """Fetch one point. Returns None on any failure."""
        try:
            payload = self._request([point], self.single_timeout)
            return parse_response(payload, 1)[0]
        except WeatherFetchError as e:
            logger.warning(
                f"Single fetch failed for ({point.lat:.4f}, {point.lon:.4f}): "
                f"{e.kind.value}: {e}"
            )
            return None
