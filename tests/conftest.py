from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import date

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from expiry_service.api import create_app, provide_today
from expiry_service.config import Settings
from expiry_service.database import Base, get_session

TODAY = date(2026, 3, 15)


@pytest.fixture()
def test_settings(tmp_path) -> Settings:
    db_path = tmp_path / "test.db"
    return Settings(
        database_url=f"sqlite+aiosqlite:///{db_path}",
        environment="test",
        app_name="Test Expiry Service",
        enable_notification_check=False,
    )


@pytest.fixture()
async def engine(test_settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(test_settings.database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture()
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def build_app(test_settings: Settings, session_factory: async_sessionmaker[AsyncSession]):
    def _build(settings: Settings | None = None) -> FastAPI:
        async def override_get_session() -> AsyncIterator[AsyncSession]:
            async with session_factory() as session:
                yield session

        app = create_app(settings or test_settings)
        app.dependency_overrides[get_session] = override_get_session
        app.dependency_overrides[provide_today] = lambda: TODAY
        return app

    return _build


@pytest.fixture()
def app(build_app) -> FastAPI:
    return build_app()


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
