"""
Test Suite Configuration
"""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from admin_service.config.settings import SecuritySettings
from admin_service.database.connection import create_session_factory
from admin_service.database.models import Base


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed SQLite store so concurrent sessions get their own connections"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'admin.db'}",
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield create_session_factory(engine)

    await engine.dispose()


@pytest.fixture
def security_settings() -> SecuritySettings:
    """Security settings with cheap password hashing"""
    return SecuritySettings(
        JWT_SECRET_KEY="test-access-secret",
        JWT_REFRESH_SECRET_KEY="test-refresh-secret",
        PASSWORD_HASH_ITERATIONS=1000,
    )
