"""WebSocket endpoint serving remote browser sessions."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from webdelegate.connection import Connection
from webdelegate.dependencies import RegistryWsDep, SettingsWsDep
from webdelegate.services import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/renderer")
async def renderer_endpoint(
    websocket: WebSocket,
    registry: RegistryWsDep,
    settings: SettingsWsDep,
) -> None:
    """Provision a browser for this connection and relay it until disconnect."""
    await websocket.accept()
    connection = Connection(websocket)
    logger.info(f"New connection from {connection.remote_host}")

    manager = SessionManager(connection, registry, settings)
    try:
        if not await manager.on_connect(websocket.query_params):
            return

        # Messages are handled one at a time, in arrival order
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is not None:
                await manager.on_message(raw)
    except WebSocketDisconnect:
        logger.debug(f"Client disconnected from session {manager.session_id}")
    finally:
        connection.mark_closed()
        await manager.on_close()
