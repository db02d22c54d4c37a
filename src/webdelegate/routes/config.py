"""Configuration API endpoint for client discovery."""

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["config"])


@router.get("/api/config")
async def get_config(request: Request) -> dict[str, Any]:
    """Return the streaming defaults a client gets when it sends no overrides."""
    settings = request.app.state.settings
    return {
        "every_nth_frame": settings.every_nth_frame,
        "screencast_format": settings.screencast_format,
        "screencast_quality": settings.screencast_quality,
        "capture_audio": settings.capture_audio,
        "capture_video": settings.capture_video,
    }
