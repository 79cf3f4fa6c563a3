"""User location sources.

The monitoring core only reads user locations. Anything with a
``get_active_users()`` method returning UserLocation records can act as the
user store.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from thundercloud.utils.geo import GeoPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserLocation:
    """Last reported location of a user.

    Attributes:
        user_id: Stable user identifier
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        last_updated: Naive UTC time of the last location update
        is_active: Whether the user has monitoring enabled
        notification_token: Push destination, None if notifications are off
    """

    user_id: str
    latitude: float
    longitude: float
    last_updated: datetime
    is_active: bool = True
    notification_token: Optional[str] = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    @classmethod
    def from_dict(cls, data: dict) -> "UserLocation":
        return cls(
            user_id=str(data.get("user_id") or data["id"]),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            last_updated=_parse_timestamp(data["last_updated"]),
            is_active=bool(data.get("is_active", True)),
            notification_token=data.get("notification_token"),
        )


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class UserStore(Protocol):
    def get_active_users(self) -> list[UserLocation]:
        ...


class InMemoryUserStore:
    """User store backed by a list, for tests and embedding."""

    def __init__(self, users: Optional[list[UserLocation]] = None):
        self.users = list(users or [])

    def add(self, user: UserLocation) -> None:
        self.users.append(user)

    def get_active_users(self) -> list[UserLocation]:
        return [u for u in self.users if u.is_active]


class JsonUserStore:
    """User store reading a JSON array of user records from disk.

    The file is re-read on every call so external updates are picked up by
    the next pass. Records that cannot be parsed are logged and skipped.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def get_active_users(self) -> list[UserLocation]:
        with open(self.path) as f:
            records = json.load(f)

        users = []
        for i, record in enumerate(records):
            try:
                user = UserLocation.from_dict(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping user record {i} in {self.path}: {e}")
                continue
            if user.is_active:
                users.append(user)
        return users
