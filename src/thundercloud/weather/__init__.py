"""Open-Meteo retrieval with staged batching and per-point fallback."""

from thundercloud.weather.batch import BatchCoordinator, StagedFetch, chunk, collect_unique
from thundercloud.weather.client import (
    FetchErrorKind,
    PerPoint,
    Scalar,
    WeatherFetcher,
    WeatherFetchError,
    parse_response,
)

__all__ = [
    "BatchCoordinator",
    "FetchErrorKind",
    "PerPoint",
    "Scalar",
    "StagedFetch",
    "WeatherFetchError",
    "WeatherFetcher",
    "chunk",
    "collect_unique",
    "parse_response",
]
