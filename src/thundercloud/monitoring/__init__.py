"""Monitoring passes over active users.

Run a pass via:
    python -m thundercloud.monitoring.run --users users.json
"""

from thundercloud.monitoring.notifier import (
    AlertMessage,
    LoggingNotifier,
    WebhookNotifier,
    build_alert_message,
)
from thundercloud.monitoring.orchestrator import (
    AlertPassResult,
    CachePassResult,
    MonitoringOrchestrator,
    build_orchestrator,
)
from thundercloud.monitoring.selector import (
    DirectionalAssessment,
    DirectionalSelector,
    DistanceAnalysis,
)
from thundercloud.monitoring.users import (
    InMemoryUserStore,
    JsonUserStore,
    UserLocation,
)

__all__ = [
    "AlertMessage",
    "AlertPassResult",
    "CachePassResult",
    "DirectionalAssessment",
    "DirectionalSelector",
    "DistanceAnalysis",
    "InMemoryUserStore",
    "JsonUserStore",
    "LoggingNotifier",
    "MonitoringOrchestrator",
    "UserLocation",
    "WebhookNotifier",
    "build_alert_message",
    "build_orchestrator",
]
