"""Lendflow API entry point.

Exposes the application instance for ASGI servers (lendflow.api.main:app)
and run() for the lendflow-api console script. Importing this module loads
and validates the settings from the environment.
"""

import logging

import uvicorn

from lendflow.api import create_app
from lendflow.core.settings import get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

app = create_app(get_settings())


def configure_logging(level: str = "INFO") -> None:
    """Set the process-wide log level and format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(
        "Starting Lendflow API on %s:%d (documents=%s)",
        settings.api_host,
        settings.api_port,
        settings.documents.backend.value,
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
