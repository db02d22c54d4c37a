from .messages import (
    ClientMessage,
    ConnectionParams,
    HistoryCommand,
    InputEvent,
    KeyDown,
    KeyUp,
    MouseDown,
    MouseMove,
    MouseUp,
    Resize,
    SessionCommand,
    Wheel,
    parse_command,
    parse_event,
)

__all__ = [
    # Handshake
    "ConnectionParams",
    # Client envelope
    "ClientMessage",
    # Input events
    "InputEvent",
    "KeyDown",
    "KeyUp",
    "MouseDown",
    "MouseMove",
    "MouseUp",
    "Resize",
    "Wheel",
    "parse_event",
    # Session commands
    "HistoryCommand",
    "SessionCommand",
    "parse_command",
]
