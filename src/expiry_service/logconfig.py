"""Logging setup shared by the API and the management commands."""
from __future__ import annotations

import logging

HANDLER_NAME = "expiry_service"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger.

    Calling this more than once only updates the level.
    """

    root = logging.getLogger()
    root.setLevel(level)
    if any(handler.get_name() == HANDLER_NAME for handler in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.set_name(HANDLER_NAME)
    root.addHandler(handler)


__all__ = ["configure_logging", "LOG_FORMAT", "HANDLER_NAME"]
