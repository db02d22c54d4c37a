"""Audio/video capture: recorder bridge and the per-session relay to the client."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from webdelegate.connection import Connection
from webdelegate.errors import ConfigurationError
from webdelegate.services.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

DEFAULT_FRAME_SIZE = 20
VIDEO_MIME_TYPE = "video/webm"
AUDIO_MIME_TYPE = "audio/webm"


@dataclass
class CaptureRequest:
    """Recorder settings for one session.

    At least one of ``want_audio`` / ``want_video`` must be set. When no MIME
    type is given, video requests default to ``video/webm`` and audio-only
    requests to ``audio/webm``.
    """

    want_audio: bool
    want_video: bool
    mime_type: str | None = None
    frame_size: int | None = None

    def __post_init__(self) -> None:
        if not self.want_audio and not self.want_video:
            raise ConfigurationError("At least audio or video must be requested")
        if not self.mime_type:
            self.mime_type = VIDEO_MIME_TYPE if self.want_video else AUDIO_MIME_TYPE
        if not self.frame_size:
            self.frame_size = DEFAULT_FRAME_SIZE

    def to_settings(self, session_id: str) -> dict[str, Any]:
        """Render the settings object the recorder's ``START_RECORDING`` expects."""
        return {
            "audio": self.want_audio,
            "video": self.want_video,
            "mimeType": self.mime_type,
            "frameSize": self.frame_size,
            "index": session_id,
        }


class CaptureBridge:
    """Drives the recorder extension running in a browser's background page.

    The extension calls the exposed ``sendData`` function with
    ``{"id": <session id>, "data": <binary string>}`` for every encoded chunk.
    Chunks are decoded and handed to ``push`` unchanged and in call order.
    """

    def __init__(self, page: Any, push: Callable[[str, bytes], None]) -> None:
        self._page = page
        self._push = push

    async def attach(self) -> None:
        await self._page.expose_function("sendData", self._on_send_data)

    def _on_send_data(self, opts: dict[str, Any]) -> None:
        # One char per byte; only the low 8 bits of each code unit are kept
        data = bytes(ord(c) & 0xFF for c in opts["data"])
        self._push(str(opts["id"]), data)

    async def start_capture(self, session_id: str, request: CaptureRequest) -> None:
        await self._page.evaluate(
            "(settings) => { START_RECORDING(settings); }",
            request.to_settings(session_id),
            isolated_context=False,
        )

    async def stop_capture(self, session_id: str) -> None:
        await self._page.evaluate(
            "(index) => { STOP_RECORDING(index); }",
            session_id,
            isolated_context=False,
        )


class CaptureRelay:
    """Forwards one session's capture chunks to its client as binary messages.

    Chunks routed here by the registry are queued and sent by the relay's own
    drain task, so a slow client only holds up its own session. Chunks are
    sent in the order they were delivered.
    """

    def __init__(
        self,
        session_id: str,
        bridge: CaptureBridge,
        registry: ConnectionRegistry,
    ) -> None:
        self.session_id = session_id
        self._bridge = bridge
        self._registry = registry
        self._connection: Connection | None = None
        self._outbound: asyncio.Queue[bytes] = asyncio.Queue()
        self._drain_task: asyncio.Task[None] | None = None
        self._started = False
        self._stopped = False

    @property
    def active(self) -> bool:
        return self._started and not self._stopped

    async def start(self, connection: Connection, request: CaptureRequest) -> None:
        """Register this relay's sink and ask the recorder to start.

        The sink is registered first so no early chunk is dropped. If the
        recorder refuses to start, the registration is rolled back and the
        error propagates.
        """
        self._connection = connection
        self._drain_task = asyncio.create_task(self._drain_loop())
        await self._registry.register(self.session_id, self.deliver)
        try:
            await self._bridge.start_capture(self.session_id, request)
        except Exception:
            await self._registry.unregister(self.session_id)
            await self._cancel_drain()
            raise
        self._started = True
        logger.info(
            f"Capture started for session {self.session_id} ({request.mime_type})"
        )

    def deliver(self, data: bytes) -> None:
        """Queue one chunk for the client. Never blocks."""
        if self._stopped or self._connection is None:
            return
        self._outbound.put_nowait(data)

    async def _drain_loop(self) -> None:
        while True:
            data = await self._outbound.get()
            try:
                if not self._stopped:
                    await self._connection.send_bytes(data)
            finally:
                self._outbound.task_done()

    async def _cancel_drain(self) -> None:
        if self._drain_task is None:
            return
        self._drain_task.cancel()
        try:
            await self._drain_task
        except asyncio.CancelledError:
            pass
        self._drain_task = None

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        await self._registry.unregister(self.session_id)
        if self._started:
            try:
                await self._bridge.stop_capture(self.session_id)
            except Exception as e:
                # The browser may already be gone
                logger.debug(
                    f"Stopping capture for session {self.session_id} failed: {e}"
                )
        await self._cancel_drain()
