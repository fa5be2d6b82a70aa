"""Service-layer utilities."""

from .ack import AckNotifier
from .alert_queue import AlertQueue, Phase, QueueSnapshot
from .alert_source import AlertSource, BackendAlertSource, Subscription
from .errors import AckError, AlertSourceError, SourceFetchError, SubscriptionParseError
from .overlay_feed import OverlayFeed
from .scheduler import DisplayScheduler, parse_duration_ms

__all__ = [
    "AckNotifier",
    "AlertQueue",
    "Phase",
    "QueueSnapshot",
    "AlertSource",
    "BackendAlertSource",
    "Subscription",
    "AckError",
    "AlertSourceError",
    "SourceFetchError",
    "SubscriptionParseError",
    "OverlayFeed",
    "DisplayScheduler",
    "parse_duration_ms",
]
