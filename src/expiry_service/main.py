"""ASGI entrypoint for running the expiry service."""
from __future__ import annotations

import uvicorn

from .config import get_settings
from .logconfig import configure_logging


def run() -> None:
    """Serve :data:`expiry_service.api.app` with uvicorn (``expiry-service`` script)."""

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "expiry_service.api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
