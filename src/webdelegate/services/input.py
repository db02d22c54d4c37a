import logging
from collections.abc import Awaitable, Callable

from webdelegate.connection import Connection
from webdelegate.errors import ConfigurationError
from webdelegate.models import (
    InputEvent,
    KeyDown,
    KeyUp,
    MouseDown,
    MouseMove,
    Resize,
    Wheel,
)
from webdelegate.services.browser import BrowserSession

logger = logging.getLogger(__name__)

BUTTONS = ("left", "middle", "right")

_Handler = Callable[[InputEvent, BrowserSession, Connection], Awaitable[None]]


def button_name(index: int) -> str:
    """Map a client button index to a browser button name."""
    if not 0 <= index < len(BUTTONS):
        raise ConfigurationError(
            f"Button index {index} out of range (expected 0-{len(BUTTONS) - 1})"
        )
    return BUTTONS[index]


class InputEventTranslator:
    """Applies client input events to a browser session.

    Holds no per-session state. Event types without a handler are ignored
    so newer clients can send events this server does not know yet.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, _Handler] = {
            "mousedown": self._mouse_down,
            "mousemove": self._mouse_move,
            "mouseup": self._mouse_up,
            "wheel": self._wheel,
            "keydown": self._key_down,
            "keyup": self._key_up,
            "resize": self._resize,
        }

    async def apply(
        self, event: InputEvent, browser: BrowserSession, connection: Connection
    ) -> None:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.debug(f"No handler for input event {event.type!r}, ignoring")
            return
        await handler(event, browser, connection)

    async def navigate_back(self, browser: BrowserSession) -> None:
        await browser.go_back()

    async def _mouse_down(
        self, event: MouseDown, browser: BrowserSession, connection: Connection
    ) -> None:
        await browser.mouse_down(button_name(event.button))

    async def _mouse_move(
        self, event: MouseMove, browser: BrowserSession, connection: Connection
    ) -> None:
        await browser.mouse_move(event.x, event.y)
        cursor = await browser.cursor_at(event.x, event.y)
        if cursor:
            await connection.send_json({"cursor": cursor})

    async def _mouse_up(
        self, event: InputEvent, browser: BrowserSession, connection: Connection
    ) -> None:
        await browser.mouse_up()

    async def _wheel(
        self, event: Wheel, browser: BrowserSession, connection: Connection
    ) -> None:
        await browser.wheel(event.delta)

    async def _key_down(
        self, event: KeyDown, browser: BrowserSession, connection: Connection
    ) -> None:
        await browser.key_down(event.key)

    async def _key_up(
        self, event: KeyUp, browser: BrowserSession, connection: Connection
    ) -> None:
        await browser.key_up(event.key)

    async def _resize(
        self, event: Resize, browser: BrowserSession, connection: Connection
    ) -> None:
        await browser.set_viewport(event.w, event.h)
