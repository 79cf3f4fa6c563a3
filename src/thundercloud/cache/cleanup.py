"""Expired cache removal.

``WeatherCache.cleanup`` deletes a bounded number of rows per call. The
scheduled cleanup job calls it repeatedly until a round comes back short.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from thundercloud.cache.weather import WeatherCache

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 50


@dataclass
class CleanupResult:
    """Result of a cleanup run."""

    deleted: int = 0
    rounds: int = 0
    duration_seconds: float = 0.0
    exhausted: bool = False  # stopped by max_rounds with rows possibly left
    per_round: list[int] = field(default_factory=list)

    def __str__(self) -> str:
        status = "max rounds reached" if self.exhausted else "done"
        return (
            f"Cleanup: {self.deleted} entries removed in {self.rounds} rounds "
            f"({self.duration_seconds:.1f}s, {status})"
        )


def drain_expired(
    cache: WeatherCache,
    retention_hours: Optional[float] = None,
    batch_size: Optional[int] = None,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
) -> CleanupResult:
    """Run cleanup rounds until one deletes fewer than ``batch_size`` rows.

    Args:
        cache: Cache to clean
        retention_hours: Override of the cache's retention window
        batch_size: Override of the cache's per-round limit
        max_rounds: Upper bound on rounds per run

    Returns:
        CleanupResult with totals
    """
    batch_size = cache.cleanup_batch_size if batch_size is None else batch_size
    result = CleanupResult()
    start = time.time()

    while result.rounds < max_rounds:
        deleted = cache.cleanup(retention_hours=retention_hours, batch_size=batch_size)
        result.rounds += 1
        result.deleted += deleted
        result.per_round.append(deleted)
        logger.debug(f"[round {result.rounds}] removed {deleted} entries")
        if deleted < batch_size:
            break
    else:
        result.exhausted = True
        logger.warning(f"Cleanup stopped after {max_rounds} rounds; more expired rows may remain")

    result.duration_seconds = time.time() - start
    logger.info(str(result))
    return result
