"""Alert backend integration: bulk fetch, change stream and mark-shown."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.models.alert import Alert, AlertId
from app.services.errors import AckError, SourceFetchError, SubscriptionParseError
from app.services.metrics import PARSE_ERRORS

logger = logging.getLogger(__name__)

OnAlert = Callable[[Alert], Any]

MAX_BACKOFF_SECONDS = 30.0


@dataclass
class Subscription:
    """Handle for a live change-event subscription bound to one overlay."""

    overlay_id: str
    on_alert: OnAlert
    task: asyncio.Task[None] | None = field(default=None, repr=False)
    active: bool = True


class AlertSource(ABC):
    """Where alerts come from and where their shown flag is written back."""

    @abstractmethod
    async def fetch_pending(self, overlay_id: str) -> list[Alert]:
        """Return alerts for ``overlay_id`` that have not been shown yet."""

    @abstractmethod
    def subscribe_created(self, overlay_id: str, on_alert: OnAlert) -> Subscription:
        """Call ``on_alert`` for each alert created for ``overlay_id``."""

    @abstractmethod
    def unsubscribe(self, subscription: Subscription) -> None:
        """Stop delivering events for ``subscription``."""

    @abstractmethod
    async def mark_shown(self, alert_id: AlertId) -> None:
        """Flag the alert as shown on the backend."""

    async def aclose(self) -> None:  # pragma: no cover - optional hook
        return None


def parse_change_event(raw: str) -> Alert | None:
    """Turn one pushed change record into an alert.

    Returns ``None`` for events other than inserts. Raises
    :class:`SubscriptionParseError` for anything that is not a well-formed
    insert record.
    """

    try:
        event = json.loads(raw)
    except ValueError as exc:
        raise SubscriptionParseError(f"Change event is not JSON: {exc}") from exc
    if not isinstance(event, dict):
        raise SubscriptionParseError("Change event must be a JSON object")

    event_type = str(event.get("type") or event.get("eventType") or "").upper()
    if event_type != "INSERT":
        return None

    row = event.get("new") or event.get("record")
    if not isinstance(row, dict):
        raise SubscriptionParseError("Insert event has no row")
    try:
        return Alert.from_row(row)
    except ValidationError as exc:
        raise SubscriptionParseError(f"Insert event row is not an alert: {exc}") from exc


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the ``data`` field of each server-sent event in ``response``."""

    data_lines: list[str] = []
    async for line in response.aiter_lines():
        if not line:
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name == "data":
            data_lines.append(value[1:] if value.startswith(" ") else value)
    if data_lines:
        yield "\n".join(data_lines)


class BackendAlertSource(AlertSource):
    """HTTP client for the alerts REST API and its change stream."""

    def __init__(
        self,
        api_url: str | None = None,
        stream_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = (api_url or settings.alerts_api_url).rstrip("/")
        self.stream_url = stream_url or settings.alerts_stream_url
        self.timeout = timeout or settings.http_timeout
        self.max_retries = settings.stream_max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.stream_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        key = api_key if api_key is not None else settings.alerts_api_key
        headers = {"Content-Type": "application/json"}
        if key:
            headers["apikey"] = key
            headers["Authorization"] = f"Bearer {key}"
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self.timeout,
            transport=transport,
        )

    async def fetch_pending(self, overlay_id: str) -> list[Alert]:
        try:
            response = await self._client.get("/alerts", params={"overlayId": overlay_id})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise SourceFetchError(
                f"Alerts API returned {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceFetchError(f"Failed to reach alerts API: {exc}") from exc
        except ValueError as exc:
            raise SourceFetchError(f"Alerts API returned invalid JSON: {exc}") from exc

        if isinstance(data, dict) and data.get("error"):
            raise SourceFetchError(f"Alerts API error: {data['error']}")
        if not isinstance(data, list):
            raise SourceFetchError(f"Unexpected alerts payload: {type(data).__name__}")

        alerts: list[Alert] = []
        for row in data:
            try:
                alerts.append(Alert.from_row(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed alert row for overlay %s: %s", overlay_id, exc)
        return alerts

    async def mark_shown(self, alert_id: AlertId) -> None:
        body = {"id": alert_id, "data": {"is_shown": True}}
        try:
            response = await self._client.put("/alerts", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AckError(
                f"Alerts API returned {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AckError(f"Failed to reach alerts API: {exc}") from exc

        if not response.content:
            return
        try:
            data = response.json()
        except ValueError:
            return
        if isinstance(data, dict) and data.get("error"):
            raise AckError(f"Alerts API error: {data['error']}")

    def subscribe_created(self, overlay_id: str, on_alert: OnAlert) -> Subscription:
        subscription = Subscription(overlay_id=overlay_id, on_alert=on_alert)
        subscription.task = asyncio.get_running_loop().create_task(
            self._listen(subscription), name=f"alert-stream-{overlay_id}"
        )
        subscription.task.add_done_callback(lambda task: self._listener_exited(subscription, task))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        if subscription.task is not None and not subscription.task.done():
            subscription.task.cancel()
        logger.info("Unsubscribed from alert stream for overlay %s", subscription.overlay_id)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _listen(self, subscription: Subscription) -> None:
        attempt = 0
        while subscription.active:
            try:
                async with self._client.stream(
                    "GET",
                    self.stream_url,
                    params={"overlayId": subscription.overlay_id},
                    headers={"Accept": "text/event-stream"},
                    timeout=httpx.Timeout(self.timeout, read=None),
                ) as response:
                    response.raise_for_status()
                    attempt = 0
                    logger.info("Subscribed to alert stream for overlay %s", subscription.overlay_id)
                    async for data in iter_sse_data(response):
                        if not subscription.active:
                            return
                        self._dispatch(subscription, data)
                reason = "stream closed by server"
            except httpx.HTTPError as exc:
                reason = str(exc) or type(exc).__name__

            if not subscription.active:
                return
            attempt += 1
            if self.max_retries and attempt >= self.max_retries:
                logger.error(
                    "Giving up on alert stream for overlay %s after %s attempts: %s",
                    subscription.overlay_id,
                    attempt,
                    reason,
                )
                return
            delay = min(self.backoff_seconds * attempt + random.uniform(0, 0.25), MAX_BACKOFF_SECONDS)
            logger.warning(
                "Alert stream for overlay %s dropped (%s); reconnecting in %.1fs",
                subscription.overlay_id,
                reason,
                delay,
            )
            await asyncio.sleep(delay)

    def _listener_exited(self, subscription: Subscription, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        subscription.active = False
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Alert stream for overlay %s stopped: %s",
                subscription.overlay_id,
                exc,
                exc_info=exc,
            )

    def _dispatch(self, subscription: Subscription, data: str) -> None:
        try:
            alert = parse_change_event(data)
        except SubscriptionParseError as exc:
            PARSE_ERRORS.inc()
            logger.warning("Dropping change event for overlay %s: %s", subscription.overlay_id, exc)
            return
        if alert is None:
            return
        try:
            subscription.on_alert(alert)
        except Exception as exc:  # pragma: no cover - keep the stream alive
            logger.error("Alert handler failed for %s: %s", alert.id, exc, exc_info=True)


__all__ = [
    "AlertSource",
    "BackendAlertSource",
    "OnAlert",
    "Subscription",
    "iter_sse_data",
    "parse_change_event",
]
