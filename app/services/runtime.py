"""Wiring of the alert pipeline for one service process."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from app.core.config import settings
from app.models.overlay import OverlayStatus
from app.services.ack import AckNotifier
from app.services.alert_queue import Phase
from app.services.alert_source import AlertSource, BackendAlertSource
from app.services.overlay_feed import OverlayFeed
from app.services.scheduler import DisplayScheduler, Sleep

logger = logging.getLogger(__name__)


@dataclass
class OverlayRuntime:
    source: AlertSource
    scheduler: DisplayScheduler
    feed: OverlayFeed
    shutdown_timeout: float | None = None

    @classmethod
    def create(cls, source: AlertSource | None = None, sleep: Sleep = asyncio.sleep) -> "OverlayRuntime":
        source = source or BackendAlertSource()
        scheduler = DisplayScheduler(
            AckNotifier(source.mark_shown),
            duration_ms=settings.default_duration_ms,
            settle_delay_ms=settings.settle_delay_ms,
            sleep=sleep,
        )
        return cls(source=source, scheduler=scheduler, feed=OverlayFeed(scheduler, source))

    async def start(self) -> None:
        self.scheduler.start()
        if settings.overlay_id:
            await self.feed.configure(settings.overlay_id, settings.alert_duration_seconds)
        logger.info("Overlay runtime started (overlay=%s)", self.feed.overlay_id)

    async def stop(self) -> None:
        self.feed.close()
        await self.scheduler.close(timeout=self.shutdown_timeout)
        await self.source.aclose()
        logger.info("Overlay runtime stopped")

    def status(self) -> OverlayStatus:
        snapshot = self.scheduler.snapshot()
        return OverlayStatus(
            overlay_id=self.feed.overlay_id,
            subscribed=self.feed.subscribed,
            phase=snapshot.phase.value,
            active_alert=snapshot.active,
            is_settling=snapshot.phase is Phase.SETTLING,
            pending=len(snapshot.pending),
            duration_ms=self.scheduler.duration_ms,
            settle_delay_ms=self.scheduler.settle_delay_ms,
        )


__all__ = ["OverlayRuntime"]
