"""Single-slot display scheduler for queued alerts."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from typing import Any, Awaitable, Callable

from app.models.alert import Alert, AlertId
from app.services.ack import AckNotifier
from app.services.alert_queue import AlertQueue, Phase, QueueSnapshot
from app.services.metrics import (
    ALERTS_ADMITTED,
    ALERTS_DISPLAYED,
    ALERTS_DUPLICATE,
    PENDING_ALERTS,
)

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 5000
SETTLE_DELAY_MS = 1000

Sleep = Callable[[float], Awaitable[Any]]


def parse_duration_ms(value: Any, default_ms: int = DEFAULT_DURATION_MS) -> int:
    """Convert a duration setting in seconds to milliseconds.

    Missing, non-numeric or non-positive values fall back to ``default_ms``.
    """

    if value is None or isinstance(value, bool):
        return default_ms
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        if not text:
            return default_ms
        try:
            seconds = float(text)
        except ValueError:
            logger.warning("Ignoring non-numeric alert duration %r", value)
            return default_ms
    if not math.isfinite(seconds) or seconds <= 0:
        logger.warning("Ignoring out-of-range alert duration %r", value)
        return default_ms
    return int(seconds * 1000)


class DisplayScheduler:
    """Shows one alert at a time: display, acknowledge, settle, then advance.

    All state lives in an :class:`AlertQueue`. Admissions and phase changes run
    on the event loop that owns the scheduler; other threads hand alerts over
    with :meth:`submit`. At most one driver task exists at a time because only
    an IDLE queue can start a new display.
    """

    def __init__(
        self,
        notifier: AckNotifier,
        queue: AlertQueue | None = None,
        duration_ms: int = DEFAULT_DURATION_MS,
        settle_delay_ms: int = SETTLE_DELAY_MS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.queue = queue or AlertQueue()
        self.notifier = notifier
        self.default_duration_ms = duration_ms
        self.settle_delay_ms = settle_delay_ms
        self._duration_ms = duration_ms
        self._sleep = sleep
        self._loop: asyncio.AbstractEventLoop | None = None
        self._driver: asyncio.Task[None] | None = None
        self._inflight_id: AlertId | None = None
        self._inflight_ms = duration_ms
        self._closed = False

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    def set_duration(self, duration_seconds: Any = None) -> int:
        """Apply a duration override; takes effect from the next display."""
        self._duration_ms = parse_duration_ms(duration_seconds, self.default_duration_ms)
        return self._duration_ms

    def admit(self, alert: Alert, source: str = "direct") -> bool:
        """Queue ``alert`` unless its id was seen before. Must run on the loop."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                "DisplayScheduler.admit must run on the event loop; use submit() from other threads"
            ) from None
        if not self.queue.try_admit(alert):
            ALERTS_DUPLICATE.labels(source=source).inc()
            logger.debug("Skipping already processed alert %s from %s", alert.id, source)
            return False
        ALERTS_ADMITTED.labels(source=source).inc()
        PENDING_ALERTS.set(len(self.queue))
        logger.info("Queued alert %s from %s", alert.id, source)
        self._advance()
        return True

    def submit(self, alert: Alert, source: str = "direct") -> None:
        """Thread-safe admission: schedule :meth:`admit` on the owning loop."""
        if self._loop is None:
            raise RuntimeError("DisplayScheduler has not been started on an event loop")
        self._loop.call_soon_threadsafe(self.admit, alert, source)

    def start(self) -> None:
        """Bind to the running loop so foreign threads can :meth:`submit`."""
        self._loop = asyncio.get_running_loop()
        self._closed = False
        self._advance()

    def active_alert(self) -> Alert | None:
        return self.queue.active()

    def is_settling(self) -> bool:
        return self.queue.is_settling()

    def snapshot(self) -> QueueSnapshot:
        return self.queue.snapshot()

    @property
    def busy(self) -> bool:
        return self._driver is not None and not self._driver.done()

    async def wait_idle(self) -> None:
        """Wait until the queue has drained and every ack has completed."""
        while self._driver is not None and not self._driver.done():
            await asyncio.shield(self._driver)
        await self.notifier.wait_idle()

    async def close(self, timeout: float | None = None) -> None:
        """Stop starting new displays and let the current one play out.

        The in-flight chain gets ``timeout`` seconds (by default its own display
        plus settle time) before it is cancelled and the queue is put back to
        IDLE.
        """
        self._closed = True
        driver = self._driver
        if driver is not None and not driver.done():
            if timeout is None:
                timeout = (self._inflight_ms + self.settle_delay_ms) / 1000
            try:
                await asyncio.wait_for(asyncio.shield(driver), timeout)
            except asyncio.TimeoutError:
                logger.warning("Display of alert %s cut short by shutdown", self._inflight_id)
                driver.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await driver
                dropped = self.queue.interrupt()
                if dropped is not None:
                    logger.info("Removed alert %s", dropped.id)
                PENDING_ALERTS.set(len(self.queue))
        self._driver = None
        await self.notifier.wait_idle()

    def _advance(self) -> None:
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        self._loop = self._loop or loop
        alert = self.queue.begin_display()
        if alert is None:
            return
        ALERTS_DISPLAYED.inc()
        self._inflight_id = alert.id
        self._inflight_ms = self._duration_ms
        logger.info("Displaying alert %s for %sms", alert.id, self._duration_ms)
        self._driver = loop.create_task(
            self._drive(alert, self._duration_ms), name=f"display-{alert.id}"
        )

    async def _drive(self, alert: Alert, duration_ms: int) -> None:
        await self._sleep(duration_ms / 1000)

        self.queue.begin_ack()
        self.notifier.notify(alert.id)
        self.queue.begin_settle()

        await self._sleep(self.settle_delay_ms / 1000)

        removed = self.queue.finish()
        PENDING_ALERTS.set(len(self.queue))
        logger.info("Removed alert %s", removed.id)
        self._advance()


__all__ = [
    "DisplayScheduler",
    "parse_duration_ms",
    "DEFAULT_DURATION_MS",
    "SETTLE_DELAY_MS",
    "Phase",
]
