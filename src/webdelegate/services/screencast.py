import logging

from webdelegate.connection import Connection
from webdelegate.services.browser import BrowserSession, ScreencastFrame

logger = logging.getLogger(__name__)

DEFAULT_EVERY_NTH_FRAME = 10
DEFAULT_FORMAT = "jpeg"
DEFAULT_QUALITY = 35


class ScreencastRelay:
    """Streams a browser's screencast frames to the client.

    Each frame is sent as ``{"frame": <payload>}`` and then acknowledged
    upstream with the token it arrived with. The browser withholds the next
    frame until the ack. Failed acks are logged and dropped.
    """

    def __init__(
        self,
        image_format: str = DEFAULT_FORMAT,
        quality: int = DEFAULT_QUALITY,
    ) -> None:
        self.image_format = image_format
        self.quality = quality
        self._connection: Connection | None = None
        self._browser: BrowserSession | None = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def start(
        self,
        connection: Connection,
        browser: BrowserSession,
        every_nth_frame: int | None = None,
    ) -> None:
        self._connection = connection
        self._browser = browser
        self._active = True
        try:
            await browser.start_screencast(
                self._on_frame,
                image_format=self.image_format,
                quality=self.quality,
                every_nth_frame=every_nth_frame or DEFAULT_EVERY_NTH_FRAME,
            )
        except Exception as e:
            logger.debug(f"Screencast start failed: {e}")

    async def _on_frame(self, frame: ScreencastFrame) -> None:
        if not self._active:
            return
        await self._connection.send_json({"frame": frame.payload})
        try:
            await self._browser.ack_frame(frame.ack_token)
        except Exception as e:
            logger.debug(f"Screencast ack {frame.ack_token} failed: {e}")

    async def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        try:
            await self._browser.stop_screencast()
        except Exception as e:
            logger.debug(f"Screencast stop failed: {e}")
