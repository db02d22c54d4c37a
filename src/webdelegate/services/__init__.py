from .browser import BrowserSession, ScreencastFrame
from .capture import CaptureBridge, CaptureRelay, CaptureRequest
from .input import InputEventTranslator
from .registry import ConnectionRegistry
from .screencast import ScreencastRelay
from .session import Session, SessionManager, SessionState

__all__ = [
    "BrowserSession",
    "ScreencastFrame",
    "CaptureBridge",
    "CaptureRelay",
    "CaptureRequest",
    "InputEventTranslator",
    "ConnectionRegistry",
    "ScreencastRelay",
    "Session",
    "SessionManager",
    "SessionState",
]
