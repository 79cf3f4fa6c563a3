"""Tests for alert delivery."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from thundercloud.monitoring.notifier import (
    ALERT_TITLE,
    LoggingNotifier,
    WebhookNotifier,
    build_alert_message,
    format_token_for_log,
)
from thundercloud.utils.geo import Direction

T0 = datetime(2024, 7, 1, 12, 0, 0)


class TestFormatToken:
    def test_long_token_truncated(self):
        assert format_token_for_log("ExponentPushToken[abcdef]") == "ExponentPu..."

    def test_short_token_unchanged(self):
        assert format_token_for_log("abc") == "abc"

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, token):
        assert format_token_for_log(token) == "<none>"


class TestBuildAlertMessage:
    """Tests for alert content."""

    def test_single_direction(self):
        message = build_alert_message("tok", ["north"], timestamp=T0)

        assert message.title == ALERT_TITLE
        assert message.body == "Thunderclouds are building to the north!"
        assert message.data == {
            "type": "thunder_cloud",
            "directions": "north",
            "timestamp": "2024-07-01T12:00:00Z",
        }

    def test_several_directions(self):
        message = build_alert_message("tok", ["north", "east", "south"], timestamp=T0)

        assert message.body == "Thunderclouds are building to the north, east and south!"
        assert message.data["directions"] == "north,east,south"

    def test_accepts_direction_enum(self):
        message = build_alert_message("tok", [Direction.WEST, Direction.EAST], timestamp=T0)
        assert message.body == "Thunderclouds are building to the west and east!"

    def test_no_directions(self):
        with pytest.raises(ValueError):
            build_alert_message("tok", [])

    def test_to_dict(self):
        data = build_alert_message("tok", ["north"], timestamp=T0).to_dict()

        assert data["token"] == "tok"
        assert data["notification"]["title"] == ALERT_TITLE
        assert data["data"]["type"] == "thunder_cloud"


class TestLoggingNotifier:
    def test_records_sent_messages(self):
        notifier = LoggingNotifier()

        assert notifier.send("tok", ["north"]) is True
        assert [m.data["directions"] for m in notifier.sent] == ["north"]


class TestWebhookNotifier:
    """Tests for webhook delivery with a mocked session."""

    def test_posts_json(self):
        session = MagicMock()
        notifier = WebhookNotifier("https://hooks.example.com/alerts", session=session, timeout=5)

        assert notifier.send("tok", ["south"]) is True

        args, kwargs = session.post.call_args
        assert args == ("https://hooks.example.com/alerts",)
        assert kwargs["json"]["token"] == "tok"
        assert kwargs["json"]["data"]["directions"] == "south"
        assert kwargs["timeout"] == 5

    def test_http_error_returns_false(self):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("503")
        notifier = WebhookNotifier("https://hooks.example.com/alerts", session=session)

        assert notifier.send("tok", ["south"]) is False

    def test_connection_error_returns_false(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        notifier = WebhookNotifier("https://hooks.example.com/alerts", session=session)

        assert notifier.send("tok", ["south"]) is False
