"""Shared fixtures: a manual clock and an in-memory alert backend."""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Any

import pytest

from app.models.alert import Alert, AlertId
from app.services.ack import AckNotifier
from app.services.alert_source import AlertSource, OnAlert, Subscription
from app.services.errors import AckError
from app.services.scheduler import DisplayScheduler


async def settle(rounds: int = 10) -> None:
    """Let ready callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualClock:
    """Drop-in replacement for ``asyncio.sleep`` driven by :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self._timers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._seq = itertools.count()

    async def sleep(self, seconds: float) -> None:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self.sleeps.append(seconds)
        heapq.heappush(self._timers, (self.now + seconds, next(self._seq), future))
        await future

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await settle()
        while self._timers and self._timers[0][0] <= target + 1e-9:
            deadline, _, future = heapq.heappop(self._timers)
            self.now = deadline
            if not future.done():
                future.set_result(None)
            await settle()
        self.now = target


class InMemoryAlertSource(AlertSource):
    def __init__(self, clock: ManualClock | None = None) -> None:
        self.clock = clock
        self.backlog: dict[str, list[Alert]] = {}
        self.subscriptions: list[Subscription] = []
        self.fetch_calls: list[str] = []
        self.fetch_error: Exception | None = None
        self.failing_acks: set[AlertId] = set()
        self.acks: list[tuple[AlertId, float | None]] = []

    async def fetch_pending(self, overlay_id: str) -> list[Alert]:
        self.fetch_calls.append(overlay_id)
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.backlog.get(overlay_id, []))

    def subscribe_created(self, overlay_id: str, on_alert: OnAlert) -> Subscription:
        subscription = Subscription(overlay_id=overlay_id, on_alert=on_alert)
        self.subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False

    def push(self, overlay_id: str, alert: Alert) -> None:
        for subscription in self.subscriptions:
            if subscription.active and subscription.overlay_id == overlay_id:
                subscription.on_alert(alert)

    async def mark_shown(self, alert_id: AlertId) -> None:
        self.acks.append((alert_id, self.clock.now if self.clock else None))
        if alert_id in self.failing_acks:
            raise AckError("backend unavailable")

    @property
    def acked_ids(self) -> list[AlertId]:
        return [alert_id for alert_id, _ in self.acks]

    @property
    def active_subscriptions(self) -> list[Subscription]:
        return [sub for sub in self.subscriptions if sub.active]


def make_alert(alert_id: AlertId, overlay_id: str = "ov-1", **payload: Any) -> Alert:
    payload.setdefault("message", f"alert {alert_id}")
    return Alert(id=alert_id, overlay_id=overlay_id, payload=payload)


def make_scheduler(source: InMemoryAlertSource, clock: ManualClock, **kwargs: Any) -> DisplayScheduler:
    return DisplayScheduler(AckNotifier(source.mark_shown), sleep=clock.sleep, **kwargs)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def source(clock: ManualClock) -> InMemoryAlertSource:
    return InMemoryAlertSource(clock)
