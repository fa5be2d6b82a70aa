"""Exceptions raised by alert source collaborators."""

from __future__ import annotations


class AlertSourceError(Exception):
    """Base class for recoverable alert backend failures."""


class SourceFetchError(AlertSourceError):
    """The bulk fetch of pending alerts failed."""


class SubscriptionParseError(AlertSourceError):
    """A pushed change event could not be turned into an alert."""


class AckError(AlertSourceError):
    """The backend did not accept a mark-shown request."""


__all__ = ["AlertSourceError", "SourceFetchError", "SubscriptionParseError", "AckError"]
