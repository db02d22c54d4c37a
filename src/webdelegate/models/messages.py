import base64
import binascii
from typing import Annotated, Any, Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator


def decode_target_url(value: str) -> str:
    """Decode a base64 (standard or URL-safe) target URL.

    Query-string parsing turns ``+`` into a space, so spaces are mapped back
    before decoding. Missing padding is tolerated.
    """
    normalized = value.strip().replace(" ", "+").replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    try:
        return base64.b64decode(normalized, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"target_url is not valid base64: {e}") from e


class ConnectionParams(BaseModel):
    """Parameters carried in the connection's handshake query string."""

    target_url: str
    target_width: int = Field(gt=0)
    target_height: int = Field(gt=0)
    every_nth_frame: int | None = Field(default=None, ge=1)
    audio: bool | None = None
    video: bool | None = None

    @field_validator("target_url", mode="before")
    @classmethod
    def parse_target_url(cls, v: Any) -> str:
        if not isinstance(v, str) or not v:
            raise ValueError("target_url is required")
        url = decode_target_url(v)
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"target_url must be an absolute URL, got {url!r}")
        return url


class ClientMessage(BaseModel):
    category: Literal["event", "command"]
    data: dict[str, Any]


# Input events


class MouseDown(BaseModel):
    type: Literal["mousedown"]
    button: int = 0


class MouseMove(BaseModel):
    type: Literal["mousemove"]
    x: float
    y: float


class MouseUp(BaseModel):
    type: Literal["mouseup"]


class Wheel(BaseModel):
    type: Literal["wheel"]
    delta: float


class Resize(BaseModel):
    type: Literal["resize"]
    w: int = Field(gt=0)
    h: int = Field(gt=0)


class KeyDown(BaseModel):
    type: Literal["keydown"]
    key: str


class KeyUp(BaseModel):
    type: Literal["keyup"]
    key: str


InputEvent = Annotated[
    Union[MouseDown, MouseMove, MouseUp, Wheel, Resize, KeyDown, KeyUp],
    Field(discriminator="type"),
]


# Session commands


class HistoryCommand(BaseModel):
    type: Literal["history"]
    value: str


# Single variant today; widen to a discriminated union when commands are added
SessionCommand = HistoryCommand

_event_adapter = TypeAdapter(InputEvent)
_command_adapter = TypeAdapter(SessionCommand)


def parse_event(data: dict[str, Any]) -> InputEvent | None:
    """Parse an event payload, returning ``None`` for unknown or malformed events."""
    try:
        return _event_adapter.validate_python(data)
    except ValidationError:
        return None


def parse_command(data: dict[str, Any]) -> SessionCommand | None:
    """Parse a command payload, returning ``None`` for unknown or malformed commands."""
    try:
        return _command_adapter.validate_python(data)
    except ValidationError:
        return None
