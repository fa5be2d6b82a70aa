"""Endpoints consumed by the overlay rendering surface."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_runtime
from app.models.overlay import ActiveAlertResponse, ConfigureRequest, OverlayStatus
from app.services.alert_queue import Phase
from app.services.runtime import OverlayRuntime

router = APIRouter(prefix="/overlay", tags=["overlay"])


@router.get("", response_model=OverlayStatus, summary="Queue and display state")
def overlay_status(runtime: OverlayRuntime = Depends(get_runtime)) -> OverlayStatus:
    return runtime.status()


@router.get("/active", response_model=ActiveAlertResponse, summary="Alert currently on screen")
def active_alert(runtime: OverlayRuntime = Depends(get_runtime)) -> ActiveAlertResponse:
    snapshot = runtime.scheduler.snapshot()
    return ActiveAlertResponse(alert=snapshot.active, is_settling=snapshot.phase is Phase.SETTLING)


@router.post("/configure", response_model=OverlayStatus, summary="Bind overlay and display duration")
async def configure_overlay(
    body: ConfigureRequest,
    runtime: OverlayRuntime = Depends(get_runtime),
) -> OverlayStatus:
    """Rebind the feed to ``overlay_id``; an omitted duration restores the default."""

    await runtime.feed.configure(body.overlay_id, body.duration_seconds)
    return runtime.status()


__all__ = ["router"]
