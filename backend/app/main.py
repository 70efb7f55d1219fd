"""FastAPI application for the trading dashboard backend.

Run with:  uvicorn --factory app.main:create_app --app-dir backend
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .streaming import StreamServices, create_stream_router, create_stream_services

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(services: StreamServices | None = None) -> FastAPI:
    """Build the app. Services are created from the environment unless injected."""
    configure_logging()
    services = services or create_stream_services()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.start()
        logger.info("Stream services started")
        try:
            yield
        finally:
            await services.stop()
            logger.info("Stream services stopped")

    app = FastAPI(title="Trading dashboard", lifespan=lifespan)
    app.state.services = services
    app.include_router(create_stream_router(services))
    return app
