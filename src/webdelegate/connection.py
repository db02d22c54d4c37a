"""Client connection wrapper that turns sends on a dead socket into no-ops."""

import json
import logging
from typing import Any

import websockets.exceptions
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

# Raised by the ASGI stack when sending on a socket the peer already closed
_SEND_ERRORS = (
    WebSocketDisconnect,
    RuntimeError,
    OSError,
    websockets.exceptions.ConnectionClosed,
)


class Connection:
    """An ordered, bidirectional message channel to one client.

    Every send is best effort: once the socket is gone, further sends are
    dropped silently so relays and in-flight input handlers never fault on a
    closed connection.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._closed = False

    @property
    def closed(self) -> bool:
        if self._closed:
            return True
        if self._websocket.application_state == WebSocketState.DISCONNECTED:
            self._closed = True
        return self._closed

    @property
    def remote_host(self) -> str:
        client = self._websocket.client
        return client.host if client else "unknown"

    def mark_closed(self) -> None:
        self._closed = True

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send *payload* as a JSON text message."""
        if self.closed:
            return
        try:
            await self._websocket.send_text(json.dumps(payload))
        except _SEND_ERRORS as e:
            logger.debug(f"Dropping text message, connection gone: {e}")
            self._closed = True

    async def send_bytes(self, data: bytes) -> None:
        """Send *data* as a binary message."""
        if self.closed:
            return
        try:
            await self._websocket.send_bytes(data)
        except _SEND_ERRORS as e:
            logger.debug(f"Dropping binary message, connection gone: {e}")
            self._closed = True

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        if self.closed:
            return
        self._closed = True
        try:
            await self._websocket.close(code=code, reason=reason)
        except _SEND_ERRORS as e:
            logger.debug(f"Close on dead connection ignored: {e}")
