"""Monitoring passes.

One scheduler tick runs one of two passes:

- Alert pass: for each active user, check every direction with the
  first-triggered policy, reading samples through the cache and fetching
  single points on a miss, then notify the user once with the triggered
  directions.
- Cache pass: collect the sample points of all active users, fetch the
  unique cache misses in staged batches, store them, and write a
  representative directional report for every user location.

Both passes are synchronous and best-effort. A failure for one user is
logged and the pass moves on.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

import requests

from thundercloud.analysis.analyzer import ThunderCloudAnalyzer
from thundercloud.cache.database import CacheDatabase
from thundercloud.cache.models import AtmosphericSample
from thundercloud.cache.weather import WeatherCache
from thundercloud.config import MonitorConfig
from thundercloud.monitoring.notifier import LoggingNotifier, Notifier, format_token_for_log
from thundercloud.monitoring.selector import DirectionalAssessment, DirectionalSelector
from thundercloud.monitoring.users import InMemoryUserStore, UserLocation, UserStore
from thundercloud.utils.clock import Clock, utcnow
from thundercloud.utils.geo import (
    Direction,
    GeoPoint,
    GridKey,
    ProjectionError,
    SampleCoordinate,
    get_projector,
    sample_coordinates,
)
from thundercloud.weather.batch import BatchCoordinator, collect_unique
from thundercloud.weather.client import WeatherFetcher

logger = logging.getLogger(__name__)


@dataclass
class AlertPassResult:
    """Result of an alert pass."""

    users_checked: int = 0
    users_failed: int = 0
    users_notified: int = 0
    notifications_failed: int = 0
    skipped_quiet_hours: bool = False
    triggered: dict[str, list[str]] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def has_failures(self) -> bool:
        return self.users_failed > 0 or self.notifications_failed > 0

    def __str__(self) -> str:
        if self.skipped_quiet_hours:
            return "Alert pass skipped (quiet hours)"
        return (
            f"Alert pass complete: {self.users_checked} users checked, "
            f"{len(self.triggered)} with thunderclouds, {self.users_notified} notified, "
            f"{self.notifications_failed} notifications failed, "
            f"{self.users_failed} users failed ({self.duration_ms}ms)"
        )


@dataclass
class CachePassResult:
    """Result of a cache-population pass."""

    users: int = 0
    total_points: int = 0
    unique_points: int = 0
    cache_hits: int = 0
    fetched: int = 0
    locations_written: int = 0
    users_failed: int = 0
    skipped_quiet_hours: bool = False
    duration_ms: int = 0

    @property
    def has_failures(self) -> bool:
        return self.users_failed > 0

    def __str__(self) -> str:
        if self.skipped_quiet_hours:
            return "Cache pass skipped (quiet hours)"
        return (
            f"Cache pass complete: {self.users} users, {self.total_points} points "
            f"({self.unique_points} unique, {self.cache_hits} cached, {self.fetched} fetched), "
            f"{self.locations_written} locations written ({self.duration_ms}ms)"
        )


class MonitoringOrchestrator:
    """Runs monitoring passes over the active users.

    All collaborators are passed in; ``build_orchestrator`` wires the
    default ones from a MonitorConfig.
    """

    def __init__(
        self,
        user_store: UserStore,
        cache: WeatherCache,
        fetcher: WeatherFetcher,
        coordinator: BatchCoordinator,
        analyzer: ThunderCloudAnalyzer,
        notifier: Notifier,
        config: Optional[MonitorConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.user_store = user_store
        self.cache = cache
        self.fetcher = fetcher
        self.coordinator = coordinator
        self.analyzer = analyzer
        self.selector = DirectionalSelector(analyzer)
        self.notifier = notifier
        self.config = config or MonitorConfig()
        self.clock = clock or utcnow
        self.projector = get_projector(self.config.projection)
        self.directions = tuple(Direction.parse(d) for d in self.config.directions)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def is_quiet(self) -> bool:
        quiet = self.config.quiet_hours
        return quiet is not None and quiet.contains(self.clock())

    def active_users(self) -> list[UserLocation]:
        """Users updated within the active window, most recent first."""
        now = self.clock()
        window_seconds = self.config.active_user_hours * 3600
        users = [
            u for u in self.user_store.get_active_users()
            if u.is_active and (now - u.last_updated).total_seconds() < window_seconds
        ]
        users.sort(key=lambda u: u.last_updated, reverse=True)
        return users

    def _samples_for(self, origin: GeoPoint, owner_id: Optional[str] = None) -> list[SampleCoordinate]:
        return sample_coordinates(
            origin,
            self.projector,
            directions=self.directions,
            distances_km=self.config.distances_km,
            owner_id=owner_id,
        )

    def _cached_or_fetched(self, point: GeoPoint) -> AtmosphericSample:
        sample = self.cache.get(point)
        if sample is not None:
            return sample
        sample = self.fetcher.fetch_single(point)
        if sample is None:
            return AtmosphericSample.default()
        self.cache.set(point, sample)
        return sample

    def _lazy_samples(self, coordinates: Sequence[SampleCoordinate]) -> Iterator[tuple[SampleCoordinate, AtmosphericSample]]:
        for coordinate in coordinates:
            yield coordinate, self._cached_or_fetched(coordinate.point)

    def _resolve_weather(self, points: list[GeoPoint]) -> tuple[dict[GridKey, AtmosphericSample], int]:
        """Serve points from the cache, staged-fetch the rest and store them.

        Returns:
            (samples by grid key, number of cache hits)
        """
        weather = {}
        misses = []
        for point in points:
            sample = self.cache.get(point)
            if sample is None:
                misses.append(point)
            else:
                weather[GridKey.from_point(point)] = sample

        if misses:
            start = time.time()
            fetched = self.coordinator.fetch_staged_report(misses)
            duration_ms = int((time.time() - start) * 1000)
            for point, sample in zip(misses, fetched.samples):
                weather[GridKey.from_point(point)] = sample
                self.cache.set(point, sample)
            error_message = None
            if fetched.defaulted:
                error_message = f"{fetched.defaulted}/{len(misses)} points fell back to default data"
            self.cache.log_fetch(
                "open-meteo:staged",
                fetched.status,
                len(misses) - fetched.defaulted,
                duration_ms,
                error_message=error_message,
            )

        return weather, len(points) - len(misses)

    def _build_report(
        self,
        origin: GeoPoint,
        samples: list[SampleCoordinate],
        weather: dict[GridKey, AtmosphericSample],
    ) -> dict:
        directions = {}
        for direction in self.directions:
            stream = [(s, weather[s.key]) for s in samples if s.direction is direction]
            assessment = self.selector.representative(direction, stream)
            directions[direction.value] = assessment.to_dict()
        return {
            "location": origin.to_dict(),
            "generated_at": self.clock().isoformat(),
            "quiet_hours": False,
            "directions": directions,
        }

    def _quiet_report(self, origin: GeoPoint) -> dict:
        return {
            "location": origin.to_dict(),
            "generated_at": self.clock().isoformat(),
            "quiet_hours": True,
            "directions": {
                d.value: {"direction": d.value, "triggered": False, "evaluated": []}
                for d in self.directions
            },
        }

    # -------------------------------------------------------------------------
    # Alert pass
    # -------------------------------------------------------------------------

    def check_user(self, user: UserLocation) -> list[DirectionalAssessment]:
        """Run the first-triggered policy for every direction around a user."""
        samples = self._samples_for(user.point, owner_id=user.user_id)
        assessments = []
        for direction in self.directions:
            coordinates = [s for s in samples if s.direction is direction]
            assessments.append(
                self.selector.first_triggered(direction, self._lazy_samples(coordinates))
            )
        return assessments

    def run_alert_pass(self) -> AlertPassResult:
        """Check every active user and notify those with thunderclouds nearby."""
        start_time = time.time()
        result = AlertPassResult()

        if self.is_quiet():
            logger.info("Quiet hours, skipping alert pass")
            result.skipped_quiet_hours = True
            return result

        users = self.active_users()
        total = len(users)
        logger.info(f"Starting alert pass for {total} active users...")

        for i, user in enumerate(users, 1):
            token = format_token_for_log(user.notification_token)
            try:
                assessments = self.check_user(user)
            except ProjectionError as e:
                logger.warning(f"[{i}/{total}] {user.user_id}: skipped - {e}")
                result.users_failed += 1
                continue
            except Exception as e:
                logger.error(f"[{i}/{total}] {user.user_id} ({token}): failed - {e}")
                result.users_failed += 1
                continue

            result.users_checked += 1
            directions = [a.direction.value for a in assessments if a.triggered]
            if not directions:
                logger.debug(f"[{i}/{total}] {user.user_id}: clear")
                continue

            result.triggered[user.user_id] = directions
            if not user.notification_token:
                logger.info(f"[{i}/{total}] {user.user_id}: thunderclouds {directions}, no token")
                continue

            try:
                delivered = self.notifier.send(user.notification_token, directions)
            except Exception as e:
                logger.error(f"[{i}/{total}] Notification to {token} raised: {e}")
                delivered = False

            if delivered:
                result.users_notified += 1
                logger.info(f"[{i}/{total}] {user.user_id}: notified {directions}")
            else:
                result.notifications_failed += 1
                logger.warning(f"[{i}/{total}] {user.user_id}: notification to {token} failed")

        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.info(str(result))
        return result

    # -------------------------------------------------------------------------
    # Cache pass
    # -------------------------------------------------------------------------

    def run_cache_pass(self) -> CachePassResult:
        """Fetch weather for all active users' sample points and store reports."""
        start_time = time.time()
        result = CachePassResult()

        if self.is_quiet():
            logger.info("Quiet hours, skipping cache pass")
            result.skipped_quiet_hours = True
            return result

        users = self.active_users()
        result.users = len(users)

        locations: dict[GridKey, tuple[GeoPoint, list[SampleCoordinate]]] = {}
        all_samples = []
        for user in users:
            key = GridKey.from_point(user.point)
            if key in locations:
                continue
            try:
                samples = self._samples_for(user.point, owner_id=user.user_id)
            except ProjectionError as e:
                logger.warning(f"{user.user_id}: skipped - {e}")
                result.users_failed += 1
                continue
            locations[key] = (user.point, samples)
            all_samples.extend(samples)

        result.total_points = len(all_samples)
        points, _ = collect_unique(all_samples)
        result.unique_points = len(points)
        logger.info(
            f"Cache pass: {result.users} users, {len(locations)} locations, "
            f"{result.total_points} points ({result.unique_points} unique)"
        )

        weather, hits = self._resolve_weather(points)
        result.cache_hits = hits
        result.fetched = len(points) - hits

        for i, (origin, samples) in enumerate(locations.values(), 1):
            report = self._build_report(origin, samples, weather)
            if self.cache.set_directional(origin, report):
                result.locations_written += 1
            logger.debug(f"[{i}/{len(locations)}] directional report stored for {origin}")

        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.info(str(result))
        return result

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def directional_weather(self, origin: GeoPoint) -> dict:
        """Directional report for one location, from cache or computed now."""
        if self.is_quiet():
            return self._quiet_report(origin)

        cached = self.cache.get_directional(origin)
        if cached is not None:
            return cached

        samples = self._samples_for(origin)
        points, _ = collect_unique(samples)
        weather, _ = self._resolve_weather(points)
        report = self._build_report(origin, samples, weather)
        self.cache.set_directional(origin, report)
        return report

    def point_weather(self, point: GeoPoint) -> dict:
        """Sample and analysis for a single coordinate."""
        source = "cache"
        sample = self.cache.get(point)
        if sample is None:
            sample = self.fetcher.fetch_single(point)
            if sample is None:
                source = "default"
                sample = AtmosphericSample.default()
            else:
                source = "upstream"
                self.cache.set(point, sample)

        return {
            "location": point.to_dict(),
            "cache_key": str(GridKey.from_point(point)),
            "source": source,
            "sample": sample.to_dict(),
            "analysis": self.analyzer.analyze(sample).to_dict(),
        }

    def close(self) -> None:
        self.cache.db.close()


def build_orchestrator(
    config: Optional[MonitorConfig] = None,
    user_store: Optional[UserStore] = None,
    notifier: Optional[Notifier] = None,
    session: Optional[requests.Session] = None,
    clock: Optional[Clock] = None,
    db: Optional[CacheDatabase] = None,
) -> MonitoringOrchestrator:
    """Wire an orchestrator from configuration.

    Args:
        config: Monitoring configuration. Defaults to ``MonitorConfig.from_env()``.
        user_store: Source of user locations. Defaults to an empty in-memory store.
        notifier: Alert delivery. Defaults to LoggingNotifier.
        session: requests session for upstream calls
        clock: Naive-UTC clock shared by the cache and the passes
        db: Existing cache database. Opened from ``config.db_path`` if omitted.
    """
    config = config or MonitorConfig.from_env()
    clock = clock or utcnow

    cache = WeatherCache(
        db or CacheDatabase(config.db_path),
        ttl_seconds=config.cache_ttl_seconds,
        retention_hours=config.cleanup_retention_hours,
        cleanup_batch_size=config.cleanup_batch_size,
        clock=clock,
    )
    fetcher = WeatherFetcher(
        session=session,
        base_url=config.api_base_url,
        user_agent=config.user_agent,
        batch_timeout=config.batch_timeout_seconds,
        single_timeout=config.single_timeout_seconds,
    )
    coordinator = BatchCoordinator(
        fetcher,
        batch_size=config.batch_size,
        batch_delay=config.batch_delay_seconds,
        fallback_delay=config.fallback_delay_seconds,
    )
    analyzer = ThunderCloudAnalyzer(
        weights=config.weights,
        threshold=config.thunder_cloud_threshold,
    )

    return MonitoringOrchestrator(
        user_store=user_store or InMemoryUserStore(),
        cache=cache,
        fetcher=fetcher,
        coordinator=coordinator,
        analyzer=analyzer,
        notifier=notifier or LoggingNotifier(),
        config=config,
        clock=clock,
    )
