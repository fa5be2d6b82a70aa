"""Pydantic models used by the overlay API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.models.alert import Alert


class ConfigureRequest(BaseModel):
    overlay_id: str | None = Field(default=None, max_length=128)
    duration_seconds: str | float | None = None


class ActiveAlertResponse(BaseModel):
    alert: Alert | None = None
    is_settling: bool = False


class OverlayStatus(BaseModel):
    overlay_id: str | None
    subscribed: bool
    phase: str
    active_alert: Alert | None = None
    is_settling: bool = False
    pending: int = 0
    duration_ms: int
    settle_delay_ms: int
