"""Deduplicated, staged batch fetching.

Many users ask for overlapping sample points. ``collect_unique`` folds them
onto one entry per cache grid cell so upstream cost grows with the number of
distinct cells, not with ``users x directions x distances``.

``fetch_staged`` then requests the unique points in sequential chunks with a
fixed pause between chunks to respect the provider's rate limits. A failed
chunk falls back to per-point requests, and a failed point gets the default
sample, so the result always has one sample per requested point.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Sequence

from thundercloud.cache.models import AtmosphericSample
from thundercloud.utils.geo import GeoPoint, GridKey, SampleCoordinate
from thundercloud.weather.client import WeatherFetcher, WeatherFetchError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_DELAY = 2.0
DEFAULT_FALLBACK_DELAY = 0.1


def collect_unique(
    samples: Iterable[SampleCoordinate],
) -> tuple[list[GeoPoint], dict[GridKey, list[SampleCoordinate]]]:
    """Group sample coordinates by grid cell.

    Returns:
        (unique_points, membership) where unique_points holds the first point
        seen for each cell, in first-seen order, and membership maps each
        cell to every sample that falls in it.
    """
    unique_points = []
    membership: dict[GridKey, list[SampleCoordinate]] = {}
    for sample in samples:
        key = sample.key
        if key not in membership:
            membership[key] = []
            unique_points.append(sample.point)
        membership[key].append(sample)
    return unique_points, membership


def chunk(items: Sequence, size: int) -> Iterator[Sequence]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError(f"Chunk size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


@dataclass
class StagedFetch:
    """Samples from a staged fetch and how many of them are defaults."""

    samples: list[AtmosphericSample]
    defaulted: int = 0

    @property
    def status(self) -> str:
        """Fetch-log status: 'success', 'partial' or 'error'."""
        if self.defaulted == 0:
            return "success"
        if self.defaulted < len(self.samples):
            return "partial"
        return "error"


class BatchCoordinator:
    """Runs staged batch fetches with per-point fallback.

    Example:
        >>> coordinator = BatchCoordinator(WeatherFetcher())
        >>> points, membership = coordinator.collect_unique(samples)
        >>> weather = coordinator.fetch_staged(points)
    """

    def __init__(
        self,
        fetcher: WeatherFetcher,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        fallback_delay: float = DEFAULT_FALLBACK_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.fallback_delay = fallback_delay
        self.sleep = sleep

    collect_unique = staticmethod(collect_unique)

    def fetch_staged(
        self,
        points: Sequence[GeoPoint],
        batch_size: Optional[int] = None,
    ) -> list[AtmosphericSample]:
        """Fetch samples for ``points`` chunk by chunk.

        Returns:
            Exactly one sample per point, in input order
        """
        return self.fetch_staged_report(points, batch_size).samples

    def fetch_staged_report(
        self,
        points: Sequence[GeoPoint],
        batch_size: Optional[int] = None,
    ) -> StagedFetch:
        """Like ``fetch_staged``, also counting points that got the default sample."""
        batch_size = batch_size or self.batch_size
        chunks = list(chunk(points, batch_size))
        if not chunks:
            return StagedFetch([])

        logger.info(f"Staged fetch: {len(points)} points in {len(chunks)} batches of <= {batch_size}")
        results: list[AtmosphericSample] = []
        defaulted = 0

        for i, batch in enumerate(chunks, 1):
            if i > 1 and self.batch_delay > 0:
                self.sleep(self.batch_delay)

            try:
                samples = self.fetcher.fetch_batch(batch)
                logger.info(f"[{i}/{len(chunks)}] Batch of {len(batch)} points OK")
            except WeatherFetchError as e:
                logger.warning(
                    f"[{i}/{len(chunks)}] Batch failed ({e.kind.value}), "
                    f"falling back to {len(batch)} single requests"
                )
                samples = self._fetch_individually(batch)
                defaulted += sum(1 for s in samples if s is None)
                samples = [AtmosphericSample.default() if s is None else s for s in samples]

            results.extend(samples)

        if defaulted:
            logger.warning(f"Used default data for {defaulted}/{len(points)} points")
        return StagedFetch(results, defaulted)

    def _fetch_individually(self, points: Sequence[GeoPoint]) -> list[Optional[AtmosphericSample]]:
        """Per-point requests; None marks a point that could not be fetched."""
        samples = []
        for i, point in enumerate(points):
            if i > 0 and self.fallback_delay > 0:
                self.sleep(self.fallback_delay)
            samples.append(self.fetcher.fetch_single(point))
        return samples
