"""Patchright-backed browser for one session.

Each session gets its own persistent Chromium context so the recorder
extension can be loaded alongside the page. The class exposes only the
primitives the session core needs: navigation, input injection, the CDP
screencast, and the recorder's ``CaptureBridge``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from patchright.async_api import Error as PlaywrightError
from patchright.async_api import async_playwright

from webdelegate.config import BrowserConfig
from webdelegate.errors import ProvisioningError
from webdelegate.services.capture import CaptureBridge

logger = logging.getLogger(__name__)

_CURSOR_AT_SCRIPT = """([x, y]) => {
    const element = document.elementFromPoint(x, y);
    if (element) {
        return window.getComputedStyle(element).cursor;
    }
    return null;
}"""


@dataclass(frozen=True)
class ScreencastFrame:
    payload: str  # base64 encoded image
    ack_token: int


FrameHandler = Callable[[ScreencastFrame], Awaitable[None]]


class BrowserSession:
    """Holds the Playwright objects backing a single remote session."""

    def __init__(self, config: BrowserConfig) -> None:
        self.config = config

        # Playwright objects
        self.playwright: Any = None
        self.context: Any = None
        self.page: Any = None
        self.cdp: Any = None

        self.capture_bridge: CaptureBridge | None = None

        self._frame_listener: Callable[[dict[str, Any]], Awaitable[None]] | None = None
        self._closed = False

    @classmethod
    async def provision(
        cls,
        config: BrowserConfig,
        width: int,
        height: int,
        push: Callable[[str, bytes], None],
    ) -> "BrowserSession":
        """Launch a browser sized to ``width`` x ``height``.

        ``push`` receives every capture chunk the recorder sends back.
        Raises ``ProvisioningError`` if the browser cannot be started.
        """
        session = cls(config)
        try:
            await session.launch(width, height, push)
        except asyncio.CancelledError:
            await session.close()
            raise
        except PlaywrightError as e:
            await session.close()
            raise ProvisioningError(f"Failed to launch browser: {e}") from e
        return session

    # -- Browser lifecycle ---------------------------------------------------

    async def launch(
        self, width: int, height: int, push: Callable[[str, bytes], None]
    ) -> None:
        cfg = self.config
        launch_opts = dict(cfg.launch_options)
        launch_opts["args"] = cfg.launch_args()
        launch_opts["ignore_default_args"] = list(cfg.ignore_default_args)

        self.playwright = await async_playwright().start()

        # An empty user data dir gives every session a throwaway profile
        self.context = await self.playwright.chromium.launch_persistent_context(
            "",
            no_viewport=True,
            **launch_opts,
        )
        self.context.set_default_navigation_timeout(cfg.navigation_timeout)

        if self.context.pages:
            self.page = self.context.pages[0]
        else:
            self.page = await self.context.new_page()
        await self.set_viewport(width, height)

        self.cdp = await self.context.new_cdp_session(self.page)

        if cfg.resolved_extension_path() is not None:
            extension_page = await self._find_extension_page()
            if extension_page is None:
                logger.warning(
                    f"Recorder extension {cfg.extension_id} did not start; "
                    "capture is unavailable for this session"
                )
            else:
                self.capture_bridge = CaptureBridge(extension_page, push)
                await self.capture_bridge.attach()

    async def _find_extension_page(self) -> Any | None:
        """Return the recorder extension's background page, waiting for it if needed."""
        prefix = f"chrome-extension://{self.config.extension_id}/"
        for page in self.context.background_pages:
            if page.url.startswith(prefix):
                return page
        try:
            page = await self.context.wait_for_event(
                "backgroundpage",
                predicate=lambda p: p.url.startswith(prefix),
                timeout=self.config.extension_timeout,
            )
        except PlaywrightError as e:
            logger.debug(f"No background page for {prefix}: {e}")
            return None
        return page

    async def close(self) -> None:
        """Close page, context and driver. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for label, closer in (
            ("page", self.page.close if self.page else None),
            ("context", self.context.close if self.context else None),
            ("playwright", self.playwright.stop if self.playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.debug(f"Error closing {label}: {e}")

    # -- Navigation ----------------------------------------------------------

    async def navigate(self, url: str) -> None:
        await self.page.goto(url)

    async def go_back(self) -> None:
        """Go back in history. Does nothing when there is no previous entry."""
        await self.page.go_back()

    async def set_viewport(self, width: int, height: int) -> None:
        await self.page.set_viewport_size({"width": int(width), "height": int(height)})

    async def bring_to_front(self) -> None:
        await self.page.bring_to_front()

    # -- Input ---------------------------------------------------------------

    async def mouse_down(self, button: str) -> None:
        await self.page.mouse.down(button=button)

    async def mouse_move(self, x: float, y: float) -> None:
        await self.page.mouse.move(float(x), float(y))

    async def mouse_up(self) -> None:
        await self.page.mouse.up()

    async def wheel(self, delta_y: float) -> None:
        await self.page.mouse.wheel(0, float(delta_y))

    async def key_down(self, key: str) -> None:
        await self.page.keyboard.down(key)

    async def key_up(self, key: str) -> None:
        await self.page.keyboard.up(key)

    async def cursor_at(self, x: float, y: float) -> str | None:
        """Return the computed CSS cursor of the element at (x, y), if any."""
        cursor = await self.page.evaluate(_CURSOR_AT_SCRIPT, [x, y])
        return cursor or None

    # -- Screencast ----------------------------------------------------------

    async def start_screencast(
        self,
        on_frame: FrameHandler,
        image_format: str,
        quality: int,
        every_nth_frame: int,
    ) -> None:
        """Subscribe *on_frame* to ``Page.screencastFrame`` and start the screencast."""

        async def _listener(params: dict[str, Any]) -> None:
            await on_frame(
                ScreencastFrame(payload=params["data"], ack_token=params["sessionId"])
            )

        self._frame_listener = _listener
        self.cdp.on("Page.screencastFrame", _listener)
        await self.cdp.send(
            "Page.startScreencast",
            {"format": image_format, "quality": quality, "everyNthFrame": every_nth_frame},
        )

    async def ack_frame(self, ack_token: int) -> None:
        await self.cdp.send("Page.screencastFrameAck", {"sessionId": ack_token})

    async def stop_screencast(self) -> None:
        if self._frame_listener is not None:
            self.cdp.remove_listener("Page.screencastFrame", self._frame_listener)
            self._frame_listener = None
        await self.cdp.send("Page.stopScreencast")
