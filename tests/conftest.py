"""
Pytest configuration and fixtures
测试配置和固件
"""

import pytest
from typing import List, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.database import Base, get_db
from app.core.config import settings
from app.main import app
from app.services.llm import PromptGenerator, get_prompt_generator
from app.utils.security import rate_limiter


# Test database URL (in-memory SQLite for fast testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_TEST_PROMPT = "A raccoon running a tiny coffee shop at midnight"


class FakePromptGenerator(PromptGenerator):
    """Prompt source that never leaves the process"""

    def __init__(self, prompts: Optional[List[str]] = None):
        super().__init__(api_key="")
        self.prompts = list(prompts or [])
        self.calls: List[bool] = []

    async def get_prompt_text(self, family_friendly: bool = True) -> str:
        self.calls.append(family_friendly)
        if self.prompts:
            return self.prompts.pop(0)
        return DEFAULT_TEST_PROMPT


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def prompt_source():
    return FakePromptGenerator()


@pytest.fixture
async def client(session_factory, prompt_source, monkeypatch):
    """HTTP client against the app with database and prompt source overridden"""
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_prompt_generator] = lambda: prompt_source

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()
