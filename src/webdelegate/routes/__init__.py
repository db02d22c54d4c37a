from .config import router as config_router
from .websocket import router as websocket_router

__all__ = [
    "config_router",
    "websocket_router",
]
