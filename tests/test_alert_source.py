"""Tests for the HTTP alert backend client."""

import asyncio
import json

import httpx
import pytest
from pydantic import ValidationError

from app.models.alert import Alert
from app.services.alert_source import BackendAlertSource, parse_change_event
from app.services.errors import AckError, SourceFetchError, SubscriptionParseError

API_URL = "http://backend.test/api"
STREAM_URL = "http://backend.test/api/alerts/stream"


def _source(handler, **kwargs):
    return BackendAlertSource(
        api_url=API_URL,
        stream_url=STREAM_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestAlertModel:
    def test_row_columns_become_payload(self):
        alert = Alert.from_row(
            {"id": 4, "overlay_id": 12, "is_shown": False, "message": "hi", "amount": 5}
        )

        assert alert.id == 4
        assert alert.overlay_id == "12"
        assert alert.payload == {"message": "hi", "amount": 5}
        assert alert.to_row()["message"] == "hi"

    def test_alert_is_immutable(self):
        alert = Alert(id=1)

        with pytest.raises(ValidationError):
            alert.id = 2


class TestFetchPending:
    def test_returns_alerts_for_overlay(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json=[{"id": 1, "message": "a"}, {"id": 2, "message": "b"}])

        async def scenario():
            source = _source(handler, api_key="secret")
            try:
                return await source.fetch_pending("ov-1")
            finally:
                await source.aclose()

        alerts = asyncio.run(scenario())

        assert [alert.id for alert in alerts] == [1, 2]
        assert alerts[0].payload == {"message": "a"}
        assert seen == {"path": "/api/alerts", "params": {"overlayId": "ov-1"}, "apikey": "secret"}

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="boom"),
            httpx.Response(200, json={"error": "not authorised"}),
            httpx.Response(200, text="<html>"),
            httpx.Response(200, json={"alerts": []}),
        ],
    )
    def test_failures_raise_source_fetch_error(self, response):
        async def scenario():
            source = _source(lambda request: response)
            try:
                await source.fetch_pending("ov-1")
            finally:
                await source.aclose()

        with pytest.raises(SourceFetchError):
            asyncio.run(scenario())

    def test_unreachable_backend_raises_source_fetch_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario():
            source = _source(handler)
            try:
                await source.fetch_pending("ov-1")
            finally:
                await source.aclose()

        with pytest.raises(SourceFetchError):
            asyncio.run(scenario())

    def test_malformed_rows_are_skipped(self):
        def handler(request):
            return httpx.Response(200, json=[{"message": "no id"}, {"id": 3}])

        async def scenario():
            source = _source(handler)
            try:
                return await source.fetch_pending("ov-1")
            finally:
                await source.aclose()

        assert [alert.id for alert in asyncio.run(scenario())] == [3]


class TestMarkShown:
    def test_puts_shown_flag(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": 7, "is_shown": True})

        async def scenario():
            source = _source(handler)
            try:
                await source.mark_shown(7)
            finally:
                await source.aclose()

        asyncio.run(scenario())

        assert seen == {
            "method": "PUT",
            "path": "/api/alerts",
            "body": {"id": 7, "data": {"is_shown": True}},
        }

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(503, text="unavailable"),
            httpx.Response(200, json={"error": "row not found"}),
        ],
    )
    def test_rejections_raise_ack_error(self, response):
        async def scenario():
            source = _source(lambda request: response)
            try:
                await source.mark_shown(7)
            finally:
                await source.aclose()

        with pytest.raises(AckError):
            asyncio.run(scenario())

    def test_empty_success_body_is_accepted(self):
        async def scenario():
            source = _source(lambda request: httpx.Response(204))
            try:
                await source.mark_shown(7)
            finally:
                await source.aclose()

        asyncio.run(scenario())


class TestChangeEvents:
    def test_insert_event_yields_alert(self):
        alert = parse_change_event(
            json.dumps({"type": "INSERT", "new": {"id": 5, "is_shown": False, "message": "x"}})
        )

        assert alert.id == 5
        assert not alert.is_shown

    def test_non_insert_events_are_ignored(self):
        assert parse_change_event(json.dumps({"type": "UPDATE", "new": {"id": 5}})) is None

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            json.dumps({"type": "INSERT"}),
            json.dumps({"type": "INSERT", "new": {"message": "missing id"}}),
        ],
    )
    def test_malformed_events_raise(self, raw):
        with pytest.raises(SubscriptionParseError):
            parse_change_event(raw)


class TestSubscription:
    def test_stream_delivers_inserts_and_survives_bad_events(self):
        body = (
            ": keep-alive\n\n"
            f"data: {json.dumps({'type': 'INSERT', 'new': {'id': 1}})}\n\n"
            "data: not json\n\n"
            f"data: {json.dumps({'type': 'UPDATE', 'new': {'id': 1}})}\n\n"
            f"data: {json.dumps({'type': 'INSERT', 'new': {'id': 2, 'is_shown': True}})}\n\n"
        )
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(
                200, content=body.encode(), headers={"Content-Type": "text/event-stream"}
            )

        async def scenario():
            received = []
            source = _source(handler, max_retries=1)
            try:
                subscription = source.subscribe_created("ov-1", received.append)
                await subscription.task
            finally:
                await source.aclose()
            return received

        received = asyncio.run(scenario())

        assert [alert.id for alert in received] == [1, 2]
        assert received[1].is_shown
        assert seen["url"] == f"{STREAM_URL}?overlayId=ov-1"

    def test_unsubscribe_cancels_reconnect_loop(self):
        async def scenario():
            source = _source(lambda request: httpx.Response(503), backoff_seconds=60)
            try:
                subscription = source.subscribe_created("ov-1", lambda alert: None)
                for _ in range(20):
                    await asyncio.sleep(0)
                source.unsubscribe(subscription)
                with pytest.raises(asyncio.CancelledError):
                    await subscription.task
                return subscription
            finally:
                await source.aclose()

        subscription = asyncio.run(scenario())

        assert not subscription.active
        assert subscription.task.cancelled()

    def test_unexpected_listener_failure_is_logged(self, caplog):
        def handler(request):
            raise RuntimeError("transport exploded")

        async def scenario():
            source = _source(handler)
            try:
                subscription = source.subscribe_created("ov-1", lambda alert: None)
                await asyncio.wait([subscription.task])
                await asyncio.sleep(0)
                return subscription
            finally:
                await source.aclose()

        subscription = asyncio.run(scenario())

        assert not subscription.active
        assert "Alert stream for overlay ov-1 stopped: transport exploded" in caplog.text
