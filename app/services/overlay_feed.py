"""Binds the display scheduler to one overlay's alert feed."""

from __future__ import annotations

import logging
from typing import Any

from app.models.alert import Alert
from app.services.alert_source import AlertSource, Subscription
from app.services.errors import SourceFetchError
from app.services.metrics import FETCH_FAILURES
from app.services.scheduler import DisplayScheduler

logger = logging.getLogger(__name__)


class OverlayFeed:
    """Loads pending alerts and follows new ones for the bound overlay.

    Rebinding to another overlay drops the old subscription, fetches the new
    overlay's backlog and subscribes again. The scheduler, and with it the set
    of already processed alert ids, is kept across rebinds.
    """

    def __init__(self, scheduler: DisplayScheduler, source: AlertSource) -> None:
        self.scheduler = scheduler
        self.source = source
        self.overlay_id: str | None = None
        self._subscription: Subscription | None = None

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def configure(self, overlay_id: Any, duration_seconds: Any = None) -> None:
        duration_ms = self.scheduler.set_duration(duration_seconds)
        normalized = str(overlay_id).strip() if overlay_id is not None else ""
        new_id = normalized or None
        if new_id == self.overlay_id:
            logger.debug("Overlay %s already bound; duration now %sms", new_id, duration_ms)
            return

        self._teardown()
        self.overlay_id = new_id
        if new_id is None:
            logger.info("Overlay feed unbound")
            return

        logger.info("Binding overlay feed to %s (duration=%sms)", new_id, duration_ms)
        self._subscription = self.source.subscribe_created(new_id, self._on_created)
        await self.load_pending(new_id)

    async def load_pending(self, overlay_id: str) -> int:
        """Admit the overlay's unshown backlog; return how many were new."""
        try:
            alerts = await self.source.fetch_pending(overlay_id)
        except SourceFetchError as exc:
            FETCH_FAILURES.inc()
            logger.error("Could not load pending alerts for overlay %s: %s", overlay_id, exc)
            return 0

        if overlay_id != self.overlay_id:
            logger.info("Discarding backlog for overlay %s; feed was rebound", overlay_id)
            return 0

        admitted = sum(1 for alert in alerts if self.scheduler.admit(alert, source="fetch"))
        logger.info(
            "Loaded %s pending alerts for overlay %s (%s new)", len(alerts), overlay_id, admitted
        )
        return admitted

    def close(self) -> None:
        """Stop following the overlay. Alerts already queued still play out."""
        self._teardown()
        self.overlay_id = None

    def _teardown(self) -> None:
        if self._subscription is not None:
            self.source.unsubscribe(self._subscription)
            self._subscription = None

    def _on_created(self, alert: Alert) -> None:
        if alert.is_shown:
            return
        self.scheduler.admit(alert, source="stream")


__all__ = ["OverlayFeed"]
