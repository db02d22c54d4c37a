"""Webdelegate FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from webdelegate.config import Settings
from webdelegate.routes import config_router, websocket_router
from webdelegate.services import ConnectionRegistry

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()

    # Shared by every session: routes recorder chunks to their connection
    registry = ConnectionRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Webdelegate starting up")
        registry.start()

        yield

        await registry.close()
        logger.info("Webdelegate shutting down")

    webdelegate_app = FastAPI(
        title="Webdelegate",
        description="Remote interactive browser sessions over WebSocket",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store services in app.state for dependency injection
    webdelegate_app.state.registry = registry
    webdelegate_app.state.settings = settings

    webdelegate_app.include_router(websocket_router)
    webdelegate_app.include_router(config_router)

    return webdelegate_app
