"""Prometheus metrics for the alert pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

ALERTS_ADMITTED = Counter(
    "overlay_alerts_admitted_total",
    "Alerts accepted into the delivery queue.",
    ["source"],
)
ALERTS_DUPLICATE = Counter(
    "overlay_alerts_duplicate_total",
    "Admission attempts rejected because the alert id was already seen.",
    ["source"],
)
ALERTS_DISPLAYED = Counter(
    "overlay_alerts_displayed_total",
    "Alerts that entered the display slot.",
)
ACKS_SENT = Counter(
    "overlay_acks_sent_total",
    "Mark-shown requests accepted by the backend.",
)
ACKS_FAILED = Counter(
    "overlay_acks_failed_total",
    "Mark-shown requests that failed.",
)
FETCH_FAILURES = Counter(
    "overlay_fetch_failures_total",
    "Bulk fetches of pending alerts that failed.",
)
PARSE_ERRORS = Counter(
    "overlay_subscription_parse_errors_total",
    "Pushed change events dropped because they could not be parsed.",
)
PENDING_ALERTS = Gauge(
    "overlay_pending_alerts",
    "Alerts waiting in the delivery queue, including the active one.",
)

__all__ = [
    "ALERTS_ADMITTED",
    "ALERTS_DUPLICATE",
    "ALERTS_DISPLAYED",
    "ACKS_SENT",
    "ACKS_FAILED",
    "FETCH_FAILURES",
    "PARSE_ERRORS",
    "PENDING_ALERTS",
]
