"""Fire-and-forget acknowledgement of displayed alerts."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from app.models.alert import AlertId
from app.services.errors import AckError
from app.services.metrics import ACKS_FAILED, ACKS_SENT

logger = logging.getLogger(__name__)

MarkShown = Callable[[AlertId], Awaitable[Any]]


class AckNotifier:
    """Marks alerts as shown on the backend without holding up the display loop."""

    def __init__(self, mark_shown: MarkShown) -> None:
        self._mark_shown = mark_shown
        self._tasks: set[asyncio.Task[bool]] = set()

    def notify(self, alert_id: AlertId) -> asyncio.Task[bool]:
        """Schedule an ack on the running loop and return immediately."""
        task = asyncio.get_running_loop().create_task(
            self.ack(alert_id), name=f"ack-{alert_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def ack(self, alert_id: AlertId) -> bool:
        try:
            await self._mark_shown(alert_id)
        except AckError as exc:
            ACKS_FAILED.inc()
            logger.warning("Could not mark alert %s as shown: %s", alert_id, exc)
            return False
        except Exception as exc:  # pragma: no cover - background safety
            ACKS_FAILED.inc()
            logger.error("Unexpected error marking alert %s as shown: %s", alert_id, exc, exc_info=True)
            return False
        ACKS_SENT.inc()
        logger.debug("Alert %s marked as shown", alert_id)
        return True

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait for every outstanding ack to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


__all__ = ["AckNotifier", "MarkShown"]
