"""Recent service log records for troubleshooting an overlay."""

from __future__ import annotations

from fastapi import APIRouter, Query

from app.core.logging_config import get_log_buffer

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("")
def list_logs(
    limit: int = Query(100, ge=1, le=200),
    level: str | None = Query(None, description="Only records at this level, e.g. ERROR"),
) -> dict[str, list[dict[str, str]]]:
    records = get_log_buffer(limit=200)
    if level:
        records = [record for record in records if record["level"] == level.upper()]
    return {"logs": records[:limit]}


__all__ = ["router"]
