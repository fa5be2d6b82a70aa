"""Alert overlay FastAPI application package."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api import api_router
from .core.config import settings
from .core.logging_config import setup_logging
from .services.runtime import OverlayRuntime


def create_app(runtime: OverlayRuntime | None = None) -> FastAPI:
    setup_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        current = runtime or OverlayRuntime.create()
        app.state.runtime = current
        await current.start()
        try:
            yield
        finally:
            await current.stop()

    logger.info("Initializing %s API", settings.app_name)
    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Provide a friendly landing response for the bare hostname."""

        return {
            "message": (
                f"{settings.app_name} is online. Try GET "
                f"{settings.api_prefix}/overlay for the current alert."
            )
        }

    return app


__all__ = ["create_app"]
