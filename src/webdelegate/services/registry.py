import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

# Hands a chunk to its session without blocking; the session sends it later
CaptureSink = Callable[[bytes], None]


class ConnectionRegistry:
    """Process-wide lookup from session id to that session's capture sink.

    Entries are non-owning: the session's ``CaptureRelay`` inserts its sink on
    start and removes it on stop. Capture chunks arrive from every browser's
    recorder through a single inbound queue (see ``push``) and are routed to
    the matching sink by ``dispatch``. All mutation and lookup happens under
    one ``asyncio.Lock``. Sinks only enqueue, so routing a chunk never waits on
    a client socket.
    """

    def __init__(self) -> None:
        self._sinks: dict[str, CaptureSink] = {}
        self._lock = asyncio.Lock()
        self._inbound: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue()
        self._pump_task: asyncio.Task[None] | None = None

    # ── lifecycle ───────────────────────────────────────────────

    def start(self) -> None:
        """Start draining the inbound chunk queue."""
        if self._pump_task is None:
            self._pump_task = asyncio.create_task(self._pump_loop())

    async def close(self) -> None:
        """Stop the pump and drop every registration."""
        if self._pump_task is not None:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
            self._pump_task = None

        async with self._lock:
            self._sinks.clear()

    # ── registrations ───────────────────────────────────────────

    async def register(self, session_id: str, sink: CaptureSink) -> None:
        async with self._lock:
            self._sinks[session_id] = sink
            logger.debug(f"Registered capture sink for session {session_id}")

    async def unregister(self, session_id: str) -> None:
        async with self._lock:
            if self._sinks.pop(session_id, None) is not None:
                logger.debug(f"Unregistered capture sink for session {session_id}")

    async def get_sink(self, session_id: str) -> CaptureSink | None:
        async with self._lock:
            return self._sinks.get(session_id)

    async def has(self, session_id: str) -> bool:
        async with self._lock:
            return session_id in self._sinks

    def __len__(self) -> int:
        return len(self._sinks)

    # ── chunk routing ───────────────────────────────────────────

    def push(self, session_id: str, data: bytes) -> None:
        """Queue a chunk from a recorder. Safe to call from synchronous callbacks."""
        self._inbound.put_nowait((session_id, data))

    async def dispatch(self, session_id: str, data: bytes) -> bool:
        """Deliver *data* to the sink registered for *session_id*.

        Returns ``False`` when no sink is registered or the sink failed.
        """
        sink = await self.get_sink(session_id)
        if sink is None:
            logger.debug(
                f"Dropping {len(data)} byte chunk for unknown session {session_id}"
            )
            return False
        try:
            sink(data)
        except Exception as e:
            logger.warning(f"Capture sink for session {session_id} failed: {e}")
            return False
        return True

    async def _pump_loop(self) -> None:
        """Route queued chunks one at a time, preserving arrival order."""
        while True:
            session_id, data = await self._inbound.get()
            try:
                await self.dispatch(session_id, data)
            finally:
                self._inbound.task_done()
