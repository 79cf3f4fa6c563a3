"""Tests for the monitoring passes."""

from datetime import timedelta

import pytest

from thundercloud.cache.models import AtmosphericSample
from thundercloud.config import MonitorConfig, QuietHours
from thundercloud.monitoring.orchestrator import (
    AlertPassResult,
    CachePassResult,
    build_orchestrator,
)
from thundercloud.monitoring.users import UserLocation
from thundercloud.utils.geo import AxisAlignedProjector, GeoPoint, sample_coordinates

TOKYO = GeoPoint(35.6812, 139.7671)
OSAKA = GeoPoint(34.6937, 135.5023)

STORMY = AtmosphericSample(
    cape=2500.0,
    lifted_index=-6.0,
    convective_inhibition=25.0,
    temperature=30.0,
    cloud_cover=80.0,
    cloud_cover_mid=70.0,
    cloud_cover_high=40.0,
)


def user_at(point, clock, user_id="u1", token="ExponentPushToken[abc123]", age_hours=1.0, **kwargs):
    return UserLocation(
        user_id=user_id,
        latitude=point.lat,
        longitude=point.lon,
        last_updated=clock() - timedelta(hours=age_hours),
        notification_token=token,
        **kwargs,
    )


def stormy_north_of(origin):
    """Stormy weather only north of ``origin``."""

    def sample_for(point):
        if point.lat > origin.lat + 0.1:
            return STORMY
        return AtmosphericSample.default()

    return sample_for


class FailingNotifier:
    def __init__(self, exc=None):
        self.exc = exc
        self.calls = []

    def send(self, token, directions):
        self.calls.append((token, directions))
        if self.exc:
            raise self.exc
        return False


class TestActiveUsers:
    """Tests for active user selection."""

    def test_window_and_order(self, orchestrator, user_store, clock):
        user_store.add(user_at(TOKYO, clock, "old", age_hours=30))
        user_store.add(user_at(TOKYO, clock, "recent", age_hours=0.5))
        user_store.add(user_at(TOKYO, clock, "older", age_hours=23))
        user_store.add(user_at(TOKYO, clock, "disabled", is_active=False))

        assert [u.user_id for u in orchestrator.active_users()] == ["recent", "older"]


class TestAlertPass:
    """Tests for run_alert_pass."""

    def test_notifies_triggered_directions_once(self, orchestrator, user_store, fake_fetcher, notifier, clock):
        user_store.add(user_at(TOKYO, clock))
        fake_fetcher.sample_for = stormy_north_of(TOKYO)

        result = orchestrator.run_alert_pass()

        assert isinstance(result, AlertPassResult)
        assert result.users_checked == 1
        assert result.users_notified == 1
        assert result.triggered == {"u1": ["north"]}
        assert not result.has_failures
        assert len(notifier.sent) == 1
        assert notifier.sent[0].data["directions"] == "north"
        assert notifier.sent[0].token == "ExponentPushToken[abc123]"

    def test_stops_fetching_after_first_trigger(self, orchestrator, user_store, fake_fetcher, clock):
        user_store.add(user_at(TOKYO, clock))
        fake_fetcher.sample_for = stormy_north_of(TOKYO)

        orchestrator.run_alert_pass()

        # north stops at 50 km, the other three directions evaluate all distances
        assert len(fake_fetcher.single_calls) == 1 + 3 * 3
        assert fake_fetcher.batch_calls == []

    def test_second_pass_reads_cache(self, orchestrator, user_store, fake_fetcher, clock):
        user_store.add(user_at(TOKYO, clock))
        orchestrator.run_alert_pass()
        calls = len(fake_fetcher.single_calls)

        clock.advance(minutes=2)
        orchestrator.run_alert_pass()

        assert len(fake_fetcher.single_calls) == calls

    def test_clear_weather_sends_nothing(self, orchestrator, user_store, notifier, clock):
        user_store.add(user_at(TOKYO, clock))

        result = orchestrator.run_alert_pass()

        assert result.users_checked == 1
        assert result.triggered == {}
        assert notifier.sent == []

    def test_user_without_token_not_notified(self, orchestrator, user_store, fake_fetcher, notifier, clock):
        user_store.add(user_at(TOKYO, clock, token=None))
        fake_fetcher.sample_for = stormy_north_of(TOKYO)

        result = orchestrator.run_alert_pass()

        assert result.triggered == {"u1": ["north"]}
        assert result.users_notified == 0
        assert result.notifications_failed == 0
        assert notifier.sent == []

    @pytest.mark.parametrize("exc", [None, RuntimeError("push service down")])
    def test_notification_failure_counted(self, orchestrator, user_store, fake_fetcher, clock, exc):
        user_store.add(user_at(TOKYO, clock))
        fake_fetcher.sample_for = stormy_north_of(TOKYO)
        orchestrator.notifier = FailingNotifier(exc)

        result = orchestrator.run_alert_pass()

        assert result.users_notified == 0
        assert result.notifications_failed == 1
        assert result.has_failures

    def test_failed_fetch_uses_default_sample(self, orchestrator, user_store, fake_fetcher, weather_cache, clock):
        user_store.add(user_at(TOKYO, clock))
        fake_fetcher.sample_for = lambda point: STORMY
        fake_fetcher.fail_points = {s.point for s in sample_coordinates(TOKYO, AxisAlignedProjector())}

        result = orchestrator.run_alert_pass()

        assert result.users_checked == 1
        assert result.triggered == {}
        assert len(fake_fetcher.single_calls) == 12
        assert weather_cache.db.count_entries() == 0

    def test_polar_user_skipped_others_checked(self, orchestrator, user_store, fake_fetcher, notifier, clock):
        user_store.add(user_at(GeoPoint(89.5, 0.0), clock, "polar", age_hours=0.5))
        user_store.add(user_at(TOKYO, clock, "tokyo"))
        fake_fetcher.sample_for = stormy_north_of(TOKYO)

        result = orchestrator.run_alert_pass()

        assert result.users_failed == 1
        assert result.users_checked == 1
        assert result.triggered == {"tokyo": ["north"]}
        assert len(notifier.sent) == 1

    def test_unexpected_error_isolated_to_user(self, orchestrator, user_store, fake_fetcher, notifier, clock):
        user_store.add(user_at(OSAKA, clock, "osaka", age_hours=0.5))
        user_store.add(user_at(TOKYO, clock, "tokyo"))

        def sample_for(point):
            if abs(point.lon - OSAKA.lon) < 4 and point.lat < 35.0:
                raise RuntimeError("corrupt upstream data")
            return stormy_north_of(TOKYO)(point)

        fake_fetcher.sample_for = sample_for

        result = orchestrator.run_alert_pass()

        assert result.users_failed == 1
        assert "tokyo" in result.triggered
        assert len(notifier.sent) == 1

    def test_quiet_hours_skip(self, orchestrator, user_store, fake_fetcher, clock):
        user_store.add(user_at(TOKYO, clock))
        orchestrator.config = MonitorConfig(quiet_hours=QuietHours(11, 13))

        result = orchestrator.run_alert_pass()

        assert result.skipped_quiet_hours
        assert "skipped" in str(result)
        assert fake_fetcher.single_calls == []


class TestCachePass:
    """Tests for run_cache_pass."""

    def test_counts_and_writes_reports(self, orchestrator, user_store, fake_fetcher, weather_cache, clock):
        user_store.add(user_at(TOKYO, clock, "a"))
        user_store.add(user_at(GeoPoint(35.6821, 139.7665), clock, "b"))  # same grid cell as a
        user_store.add(user_at(OSAKA, clock, "c"))

        result = orchestrator.run_cache_pass()

        assert isinstance(result, CachePassResult)
        assert result.users == 3
        assert result.total_points == 24
        assert result.unique_points == 24
        assert result.cache_hits == 0
        assert result.fetched == 24
        assert result.locations_written == 2
        assert len(fake_fetcher.batch_calls) == 1
        assert weather_cache.db.count_entries() == 24
        assert weather_cache.db.count_directional() == 2

    def test_second_pass_served_from_cache(self, orchestrator, user_store, fake_fetcher, clock):
        user_store.add(user_at(TOKYO, clock))
        orchestrator.run_cache_pass()

        clock.advance(minutes=1)
        result = orchestrator.run_cache_pass()

        assert result.cache_hits == 12
        assert result.fetched == 0
        assert len(fake_fetcher.batch_calls) == 1

    def test_fetches_logged(self, orchestrator, user_store, weather_cache, clock):
        user_store.add(user_at(TOKYO, clock))

        orchestrator.run_cache_pass()

        fetches = weather_cache.db.get_recent_fetches()
        assert fetches[0].source == "open-meteo:staged"
        assert fetches[0].records_added == 12
        assert fetches[0].status == "success"
        assert fetches[0].error_message is None

    def test_partial_fallback_logged_as_partial(self, orchestrator, user_store, fake_fetcher, weather_cache, clock):
        user_store.add(user_at(TOKYO, clock))
        fake_fetcher.fail_batches = True
        fake_fetcher.fail_points = {s.point for s in sample_coordinates(TOKYO, AxisAlignedProjector())[:3]}

        orchestrator.run_cache_pass()

        fetch = weather_cache.db.get_recent_fetches()[0]
        assert fetch.status == "partial"
        assert fetch.records_added == 9
        assert "3/12" in fetch.error_message

    def test_all_points_defaulted_logged_as_error(self, orchestrator, user_store, fake_fetcher, weather_cache, clock):
        user_store.add(user_at(TOKYO, clock))
        fake_fetcher.fail_batches = True
        fake_fetcher.fail_points = {s.point for s in sample_coordinates(TOKYO, AxisAlignedProjector())}

        orchestrator.run_cache_pass()

        fetch = weather_cache.db.get_recent_fetches()[0]
        assert fetch.status == "error"
        assert fetch.records_added == 0

    def test_report_reflects_weather(self, orchestrator, user_store, fake_fetcher, weather_cache, clock):
        user_store.add(user_at(TOKYO, clock))
        fake_fetcher.sample_for = stormy_north_of(TOKYO)

        orchestrator.run_cache_pass()
        report = weather_cache.get_directional(TOKYO)

        assert report["quiet_hours"] is False
        assert report["location"] == TOKYO.to_dict()
        north = report["directions"]["north"]
        assert north["triggered"] is True
        assert north["distance_km"] == 50.0
        assert len(north["evaluated"]) == 3
        assert report["directions"]["south"]["triggered"] is False

    def test_polar_user_skipped(self, orchestrator, user_store, clock):
        user_store.add(user_at(GeoPoint(-89.9, 10.0), clock, "polar"))
        user_store.add(user_at(TOKYO, clock, "tokyo"))

        result = orchestrator.run_cache_pass()

        assert result.users_failed == 1
        assert result.locations_written == 1
        assert result.has_failures

    def test_no_users(self, orchestrator, fake_fetcher):
        result = orchestrator.run_cache_pass()

        assert result.total_points == 0
        assert fake_fetcher.batch_calls == []

    def test_quiet_hours_skip(self, orchestrator, user_store, fake_fetcher, clock):
        user_store.add(user_at(TOKYO, clock))
        orchestrator.config = MonitorConfig(quiet_hours=QuietHours(11, 13))

        assert orchestrator.run_cache_pass().skipped_quiet_hours
        assert fake_fetcher.batch_calls == []


class TestLookups:
    """Tests for directional_weather and point_weather."""

    def test_directional_weather_computed_then_cached(self, orchestrator, fake_fetcher):
        first = orchestrator.directional_weather(TOKYO)
        second = orchestrator.directional_weather(TOKYO)

        assert first == second
        assert set(first["directions"]) == {"north", "south", "east", "west"}
        assert len(fake_fetcher.batch_calls) == 1

    def test_directional_weather_recomputed_after_ttl(self, orchestrator, fake_fetcher, clock):
        orchestrator.directional_weather(TOKYO)
        clock.advance(minutes=6)

        orchestrator.directional_weather(TOKYO)

        assert len(fake_fetcher.batch_calls) == 2

    def test_directional_weather_quiet_hours(self, orchestrator, fake_fetcher):
        orchestrator.config = MonitorConfig(quiet_hours=QuietHours(11, 13))

        report = orchestrator.directional_weather(TOKYO)

        assert report["quiet_hours"] is True
        assert report["directions"]["north"] == {"direction": "north", "triggered": False, "evaluated": []}
        assert fake_fetcher.batch_calls == []

    def test_point_weather_sources(self, orchestrator, fake_fetcher):
        fake_fetcher.sample_for = lambda point: STORMY

        first = orchestrator.point_weather(TOKYO)
        second = orchestrator.point_weather(TOKYO)

        assert first["source"] == "upstream"
        assert second["source"] == "cache"
        assert first["cache_key"] == "weather_35.68_139.77"
        assert first["analysis"]["is_thunder_cloud_likely"] is True
        assert len(fake_fetcher.single_calls) == 1

    def test_point_weather_default_not_cached(self, orchestrator, fake_fetcher, weather_cache):
        fake_fetcher.fail_points = {TOKYO}

        result = orchestrator.point_weather(TOKYO)

        assert result["source"] == "default"
        assert result["sample"] == AtmosphericSample.default().to_dict()
        assert weather_cache.get(TOKYO) is None


def test_build_orchestrator(temp_db, clock):
    config = MonitorConfig(batch_size=10, weights="historical", projection="great_circle")

    orchestrator = build_orchestrator(config=config, db=temp_db, clock=clock)

    assert orchestrator.coordinator.batch_size == 10
    assert orchestrator.analyzer.weights.cin == 0.1
    assert orchestrator.cache.db is temp_db
    assert orchestrator.cache.ttl == timedelta(seconds=300)
    assert orchestrator.run_alert_pass().users_checked == 0
