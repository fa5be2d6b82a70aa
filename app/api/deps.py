"""API dependencies."""

from __future__ import annotations

from fastapi import Request

from app.services.runtime import OverlayRuntime


def get_runtime(request: Request) -> OverlayRuntime:
    return request.app.state.runtime
