"""API test fixtures — in-process ASGI client, no lifespan."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from bloodtrack.infrastructure.database import DatabaseSessionManager
from bloodtrack.main import app


@pytest.fixture
async def client():
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def sqlite_manager():
    manager = DatabaseSessionManager(create_async_engine("sqlite+aiosqlite:///:memory:"))
    yield manager
    await manager.dispose()
