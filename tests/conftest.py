"""Shared fixtures for webdelegate tests."""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketState

from webdelegate.config import BrowserConfig, Settings
from webdelegate.connection import Connection
from webdelegate.services import ConnectionRegistry


def encode_url(url: str) -> str:
    return base64.b64encode(url.encode()).decode()


@pytest.fixture
def settings():
    """Settings with the recorder extension disabled."""
    return Settings(browser=BrowserConfig(extension_path=None))


@pytest.fixture
def registry():
    """Create a fresh ConnectionRegistry instance."""
    return ConnectionRegistry()


@pytest.fixture
def websocket():
    """A MagicMock standing in for a FastAPI WebSocket."""
    ws = MagicMock()
    ws.application_state = WebSocketState.CONNECTED
    ws.client = MagicMock(host="127.0.0.1")
    ws.send_text = AsyncMock()
    ws.send_bytes = AsyncMock()
    ws.close = AsyncMock()
    return ws


@pytest.fixture
def connection(websocket):
    return Connection(websocket)


@pytest.fixture
def mock_bridge():
    """A MagicMock standing in for a CaptureBridge."""
    bridge = MagicMock()
    bridge.start_capture = AsyncMock()
    bridge.stop_capture = AsyncMock()
    return bridge


@pytest.fixture
def mock_browser(mock_bridge):
    """A MagicMock standing in for a BrowserSession."""
    browser = MagicMock()
    browser.navigate = AsyncMock()
    browser.go_back = AsyncMock()
    browser.set_viewport = AsyncMock()
    browser.bring_to_front = AsyncMock()
    browser.mouse_down = AsyncMock()
    browser.mouse_move = AsyncMock()
    browser.mouse_up = AsyncMock()
    browser.wheel = AsyncMock()
    browser.key_down = AsyncMock()
    browser.key_up = AsyncMock()
    browser.cursor_at = AsyncMock(return_value=None)
    browser.start_screencast = AsyncMock()
    browser.ack_frame = AsyncMock()
    browser.stop_screencast = AsyncMock()
    browser.close = AsyncMock()
    browser.capture_bridge = mock_bridge
    return browser


@pytest.fixture
def browser_factory(mock_browser):
    """An async factory returning ``mock_browser``; records the requested size."""
    return AsyncMock(return_value=mock_browser)


@pytest.fixture
def connect_params():
    return {
        "target_url": encode_url("https://example.com"),
        "target_width": "800",
        "target_height": "600",
    }


async def settle() -> None:
    """Let pending tasks run one scheduling step."""
    await asyncio.sleep(0)
