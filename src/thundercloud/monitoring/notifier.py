"""Alert delivery.

The core hands a notifier a destination token and the triggered directions,
once per user per pass. Delivery is fire-and-forget: the result is only
logged and counted, never retried.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol, Sequence

import requests

from thundercloud.utils.clock import utcnow

logger = logging.getLogger(__name__)

ALERT_TITLE = "Thundercloud alert"
ALERT_TYPE = "thunder_cloud"
TOKEN_LOG_CHARS = 10


def format_token_for_log(token: Optional[str]) -> str:
    """Truncate a notification token for log output."""
    if not token:
        return "<none>"
    if len(token) <= TOKEN_LOG_CHARS:
        return token
    return token[:TOKEN_LOG_CHARS] + "..."


@dataclass
class AlertMessage:
    """Notification content sent for one user."""

    token: str
    title: str
    body: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "notification": {"title": self.title, "body": self.body},
            "data": self.data,
        }


def build_alert_message(
    token: str,
    directions: Sequence[str],
    timestamp: Optional[datetime] = None,
) -> AlertMessage:
    """Build the alert for a set of triggered directions."""
    names = [str(getattr(d, "value", d)) for d in directions]
    if not names:
        raise ValueError("An alert needs at least one direction")
    if len(names) == 1:
        where = f"the {names[0]}"
    else:
        where = "the " + ", ".join(names[:-1]) + f" and {names[-1]}"
    return AlertMessage(
        token=token,
        title=ALERT_TITLE,
        body=f"Thunderclouds are building to {where}!",
        data={
            "type": ALERT_TYPE,
            "directions": ",".join(names),
            "timestamp": (timestamp or utcnow()).isoformat() + "Z",
        },
    )


class Notifier(Protocol):
    def send(self, token: str, directions: Sequence[str]) -> bool:
        ...


class LoggingNotifier:
    """Notifier that only logs alerts. Keeps sent messages for inspection."""

    def __init__(self):
        self.sent: list[AlertMessage] = []

    def send(self, token: str, directions: Sequence[str]) -> bool:
        message = build_alert_message(token, directions)
        self.sent.append(message)
        logger.info(f"ALERT to {format_token_for_log(token)}: {message.body}")
        return True


class WebhookNotifier:
    """Notifier that POSTs the alert as JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def send(self, token: str, directions: Sequence[str]) -> bool:
        message = build_alert_message(token, directions)
        try:
            response = self.session.post(self.url, json=message.to_dict(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Webhook delivery to {format_token_for_log(token)} failed: {e}")
            return False

        logger.info(f"Alert delivered to {format_token_for_log(token)}: {message.data['directions']}")
        return True
