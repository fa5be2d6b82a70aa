"""Alert and overlay API models."""

from .alert import Alert, AlertId
from .overlay import ActiveAlertResponse, ConfigureRequest, OverlayStatus

__all__ = [
    "Alert",
    "AlertId",
    "ActiveAlertResponse",
    "ConfigureRequest",
    "OverlayStatus",
]
