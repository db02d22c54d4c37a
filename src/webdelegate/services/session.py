"""Per-connection session lifecycle.

A ``SessionManager`` owns one client connection end to end::

    CONNECTING -> PROVISIONING -> ACTIVE -> CLOSING -> CLOSED

Provisioning runs as a background task so the receive loop keeps draining
the socket; input that arrives before the session is ACTIVE is dropped.
Any non-terminal state can move to CLOSING when the connection goes away.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any

from patchright.async_api import Error as PlaywrightError
from pydantic import ValidationError

from webdelegate.config import Settings
from webdelegate.connection import Connection
from webdelegate.errors import ConfigurationError
from webdelegate.models import ClientMessage, ConnectionParams, parse_command, parse_event
from webdelegate.services.browser import BrowserSession
from webdelegate.services.capture import CaptureRelay, CaptureRequest
from webdelegate.services.input import InputEventTranslator
from webdelegate.services.registry import ConnectionRegistry
from webdelegate.services.screencast import ScreencastRelay

logger = logging.getLogger(__name__)

CLOSE_INVALID_PARAMS = 4000
CLOSE_PROVISIONING_FAILED = 4001

BrowserFactory = Callable[[int, int], Awaitable[BrowserSession]]


class SessionState(str, Enum):
    CONNECTING = "connecting"
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Session:
    connection: Connection
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: SessionState = SessionState.CONNECTING
    params: ConnectionParams | None = None
    browser: BrowserSession | None = None
    screencast: ScreencastRelay | None = None
    capture: CaptureRelay | None = None


class SessionManager:
    def __init__(
        self,
        connection: Connection,
        registry: ConnectionRegistry,
        settings: Settings,
        browser_factory: BrowserFactory | None = None,
        translator: InputEventTranslator | None = None,
    ) -> None:
        self.session = Session(connection=connection)
        self._registry = registry
        self._settings = settings
        self._browser_factory = browser_factory or partial(
            BrowserSession.provision, settings.browser, push=registry.push
        )
        self._translator = translator or InputEventTranslator()
        self._lock = asyncio.Lock()
        self._provision_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def session_id(self) -> str:
        return self.session.session_id

    # -- Connect / provision -------------------------------------------------

    async def on_connect(self, params: Mapping[str, Any]) -> bool:
        """Validate handshake parameters and start provisioning.

        Returns ``False`` (after closing the connection) if the parameters
        are unusable.
        """
        try:
            self.session.params = ConnectionParams.model_validate(dict(params))
        except ValidationError as e:
            logger.warning(f"Rejecting session {self.session_id}: {e}")
            self.session.state = SessionState.CLOSED
            await self.session.connection.close(
                code=CLOSE_INVALID_PARAMS, reason="Invalid connection parameters"
            )
            return False

        self.session.state = SessionState.PROVISIONING
        self._provision_task = asyncio.create_task(self._provision())
        return True

    async def wait_provisioned(self) -> None:
        """Wait for the provisioning task, if any, to finish."""
        if self._provision_task is None:
            return
        try:
            await self._provision_task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Provisioning task for session {self.session_id} crashed: {e!r}")

    async def _provision(self) -> None:
        session = self.session
        params = session.params
        try:
            session.browser = await self._browser_factory(
                params.target_width, params.target_height
            )
            await session.browser.navigate(params.target_url)
        except Exception as e:
            logger.warning(f"Provisioning failed for session {self.session_id}: {e}")
            await self._fail_provisioning()
            return

        async with self._lock:
            if session.state is not SessionState.PROVISIONING:
                # Closed while the browser was starting; on_close releases it
                return
            session.state = SessionState.ACTIVE
            logger.info(
                f"Session {self.session_id} active: {params.target_url} "
                f"at {params.target_width}x{params.target_height}"
            )

            session.screencast = ScreencastRelay(
                image_format=self._settings.screencast_format,
                quality=self._settings.screencast_quality,
            )
            await session.screencast.start(
                session.connection,
                session.browser,
                every_nth_frame=params.every_nth_frame
                or self._settings.every_nth_frame,
            )
            await self._start_capture()

    async def _fail_provisioning(self) -> None:
        session = self.session
        if session.browser is not None:
            await session.browser.close()
            session.browser = None
        session.state = SessionState.CLOSED
        await session.connection.close(
            code=CLOSE_PROVISIONING_FAILED, reason="Browser provisioning failed"
        )

    def _capture_request(self) -> CaptureRequest | None:
        params = self.session.params
        want_audio = (
            params.audio if params.audio is not None else self._settings.capture_audio
        )
        want_video = (
            params.video if params.video is not None else self._settings.capture_video
        )
        if not want_audio and not want_video:
            return None
        # The configured MIME type only describes the default modality mix
        mime_type = None
        if (want_audio, want_video) == (
            self._settings.capture_audio,
            self._settings.capture_video,
        ):
            mime_type = self._settings.capture_mime_type
        return CaptureRequest(
            want_audio=want_audio,
            want_video=want_video,
            mime_type=mime_type,
            frame_size=self._settings.capture_frame_size,
        )

    async def _start_capture(self) -> None:
        session = self.session
        request = self._capture_request()
        if request is None:
            return
        bridge = session.browser.capture_bridge
        if bridge is None:
            logger.warning(
                f"Capture requested for session {self.session_id} but no recorder is available"
            )
            return

        relay = CaptureRelay(self.session_id, bridge, self._registry)
        try:
            await session.browser.bring_to_front()
            await relay.start(session.connection, request)
        except Exception as e:
            logger.warning(f"Capture failed to start for session {self.session_id}: {e}")
            return
        session.capture = relay

    # -- Messages ------------------------------------------------------------

    async def on_message(self, raw: str | bytes) -> None:
        """Handle one client message. Malformed or unknown messages are ignored."""
        try:
            message = ClientMessage.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.debug(f"Ignoring malformed message: {e}")
            return

        async with self._lock:
            session = self.session
            if session.state is not SessionState.ACTIVE:
                logger.debug(
                    f"Dropping {message.category} while session is {session.state.value}"
                )
                return
            try:
                if message.category == "event":
                    await self._handle_event(message.data)
                else:
                    await self._handle_command(message.data)
            except ConfigurationError as e:
                logger.warning(f"Rejected input for session {self.session_id}: {e}")
            except PlaywrightError as e:
                logger.warning(f"Browser action failed for session {self.session_id}: {e}")

    async def _handle_event(self, data: dict[str, Any]) -> None:
        event = parse_event(data)
        if event is None:
            logger.debug(f"Ignoring unknown event {data.get('type')!r}")
            return
        await self._translator.apply(event, self.session.browser, self.session.connection)

    async def _handle_command(self, data: dict[str, Any]) -> None:
        command = parse_command(data)
        if command is None:
            logger.debug(f"Ignoring unknown command {data.get('type')!r}")
            return
        if command.type == "history" and command.value == "back":
            await self._translator.navigate_back(self.session.browser)
        else:
            logger.debug(f"Ignoring {command.type} command value {command.value!r}")

    # -- Close ---------------------------------------------------------------

    async def on_close(self) -> None:
        """Tear the session down. Safe to call repeatedly and in any state."""
        session = self.session
        if session.state in (SessionState.CLOSING, SessionState.CLOSED):
            return
        session.state = SessionState.CLOSING
        session.connection.mark_closed()

        if self._provision_task is not None and not self._provision_task.done():
            self._provision_task.cancel()
        await self.wait_provisioned()

        async with self._lock:
            await self._registry.unregister(self.session_id)
            if session.screencast is not None:
                await session.screencast.stop()
            if session.capture is not None:
                await session.capture.stop()
            if session.browser is not None:
                await session.browser.close()
                session.browser = None
            session.state = SessionState.CLOSED
        logger.info(f"Session {self.session_id} closed")
