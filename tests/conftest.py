"""Shared pytest fixtures for thundercloud tests.

Test Tiers:
- unit: Fast tests with fixtures, no network (default)
- live: Real Open-Meteo calls, slow, requires network

Run live tests with: pytest -m live --run-live
"""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from thundercloud.analysis.analyzer import ThunderCloudAnalyzer
from thundercloud.cache.database import CacheDatabase
from thundercloud.cache.models import AtmosphericSample
from thundercloud.cache.weather import WeatherCache
from thundercloud.config import MonitorConfig
from thundercloud.monitoring.notifier import LoggingNotifier
from thundercloud.monitoring.orchestrator import MonitoringOrchestrator
from thundercloud.monitoring.users import InMemoryUserStore
from thundercloud.utils.clock import FrozenClock
from thundercloud.weather.batch import BatchCoordinator
from thundercloud.weather.client import FetchErrorKind, WeatherFetchError


def pytest_addoption(parser):
    """Add command line options for test configuration."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run live API tests (slow, requires network)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests using fixtures")
    config.addinivalue_line("markers", "live: real API tests (slow, requires network)")


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified."""
    if config.getoption("--run-live"):
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# A sample scoring 1.0 with the reference weights
STORMY = AtmosphericSample(
    cape=2500.0,
    lifted_index=-6.0,
    convective_inhibition=25.0,
    temperature=30.0,
    cloud_cover=80.0,
    cloud_cover_mid=70.0,
    cloud_cover_high=40.0,
)


class FakeFetcher:
    """In-process stand-in for WeatherFetcher.

    ``sample_for(point)`` decides what each point returns. Batch calls can be
    made to fail with ``fail_batches``; single calls listed in
    ``fail_points`` return None.
    """

    def __init__(self, sample_for=None):
        self.sample_for = sample_for or (lambda point: AtmosphericSample.default())
        self.fail_batches = False
        self.fail_points = set()
        self.batch_calls = []
        self.single_calls = []

    def fetch_batch(self, points):
        self.batch_calls.append(list(points))
        if self.fail_batches:
            raise WeatherFetchError("boom", kind=FetchErrorKind.TIMEOUT, point_count=len(points))
        return [self.sample_for(p) for p in points]

    def fetch_single(self, point):
        self.single_calls.append(point)
        if point in self.fail_points:
            return None
        return self.sample_for(point)


@pytest.fixture
def clock() -> FrozenClock:
    """Clock fixed at noon UTC, advanced manually."""
    return FrozenClock(datetime(2024, 7, 1, 12, 0, 0))


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.duckdb"
        db = CacheDatabase(db_path)
        yield db
        db.close()


@pytest.fixture
def weather_cache(temp_db, clock) -> WeatherCache:
    return WeatherCache(temp_db, ttl_seconds=300, retention_hours=2.0, cleanup_batch_size=100, clock=clock)


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def stormy_sample() -> AtmosphericSample:
    return STORMY


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def orchestrator(user_store, weather_cache, fake_fetcher, notifier, clock) -> MonitoringOrchestrator:
    """Orchestrator over a temp cache and the fake fetcher, with no batch delays."""
    return MonitoringOrchestrator(
        user_store=user_store,
        cache=weather_cache,
        fetcher=fake_fetcher,
        coordinator=BatchCoordinator(fake_fetcher, sleep=lambda seconds: None),
        analyzer=ThunderCloudAnalyzer(),
        notifier=notifier,
        config=MonitorConfig(),
        clock=clock,
    )
