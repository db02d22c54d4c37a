import logging

import uvicorn

from webdelegate.app import create_app
from webdelegate.config import Settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Expose app for ASGI servers: uvicorn webdelegate:app
app = create_app()


def main() -> None:
    """Development entry point using uvicorn directly."""
    settings = Settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    uvicorn.run("webdelegate:app", host=settings.host, port=settings.port)
