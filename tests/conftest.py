from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from schoolchat.api.main import create_app
from schoolchat.core.config import Settings, get_settings
from schoolchat.infrastructure.db.base import Base
from schoolchat.runtime import ChatRuntime, build_runtime

from tests.utils import FakeLiveServer, School, seed_school


@pytest.fixture()
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    # File database: every store call opens its own connection
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
async def school(session_factory: async_sessionmaker[AsyncSession]) -> School:
    async with session_factory() as session:
        return await seed_school(session)


@pytest.fixture()
def settings() -> Settings:
    return get_settings().model_copy(
        update={"environment": "test", "socket_auth_timeout_seconds": 2.0}
    )


@pytest.fixture()
def live_server() -> FakeLiveServer:
    return FakeLiveServer()


@pytest.fixture()
def runtime(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    live_server: FakeLiveServer,
) -> ChatRuntime:
    return build_runtime(session_factory, settings=settings, server=live_server)


@pytest.fixture()
def app(runtime: ChatRuntime, session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    return create_app(runtime=runtime, session_factory=session_factory)


@pytest.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Async HTTP client for the REST routes."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
