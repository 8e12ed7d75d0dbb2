"""Utility helpers for administrative tasks."""
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from . import crud
from .config import get_settings
from .database import Base, create_engine, create_session_factory
from .logconfig import configure_logging

logger = logging.getLogger(__name__)


async def init_database(engine: AsyncEngine) -> None:
    """Create database tables and the default notification settings row."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        await crud.load_notification_settings(session)
        await session.commit()
    logger.info("Database initialised at %s", engine.url)


async def _init_configured_database() -> None:
    engine = create_engine(get_settings())
    try:
        await init_database(engine)
    finally:
        await engine.dispose()


def cli_init_database() -> None:
    """CLI wrapper behind the ``expiry-service-init-db`` script."""

    configure_logging(get_settings().log_level)
    asyncio.run(_init_configured_database())


if __name__ == "__main__":
    cli_init_database()
