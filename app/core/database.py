"""
Database configuration and connection management
数据库配置和连接管理 - 异步 SQLAlchemy 引擎与会话

生产环境使用 MySQL (aiomysql)；本地和测试可以用 sqlite+aiosqlite。
会话使用 expire_on_commit=False，提交后仍可读取已加载的属性。
"""

import time
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by every model"""
    pass


def engine_options(url: str) -> Dict[str, Any]:
    """Pool settings for server databases; SQLite gets the dialect defaults"""
    options: Dict[str, Any] = {"echo": settings.DEBUG}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        return options

    options.update(
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )
    return options


class DatabaseManager:
    """Owns the async engine and the session factory"""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    async def initialize(self, database_url: Optional[str] = None):
        url = database_url or settings.DATABASE_URL
        self.engine = create_async_engine(url, **engine_options(url))
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        try:
            await self.ping()
        except SQLAlchemyError as e:
            logger.error(f"[DB] Cannot reach {self.engine.url.render_as_string(hide_password=True)}: {e}")
            raise
        logger.info(f"[DB] Connected to {self.engine.url.render_as_string(hide_password=True)}")

    async def ping(self) -> float:
        """Round-trip a trivial query; returns the latency in milliseconds"""
        if self.engine is None:
            raise RuntimeError("Database manager not initialized")

        started = time.perf_counter()
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (time.perf_counter() - started) * 1000

    async def health_check(self) -> Dict[str, Any]:
        try:
            latency_ms = await self.ping()
        except (RuntimeError, SQLAlchemyError) as e:
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy", "latency_ms": round(latency_ms, 2)}

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session for work outside a request; commits on success, rolls back on error"""
        if self.session_factory is None:
            raise RuntimeError("Database manager not initialized")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"[DB] Transaction rolled back: {e}")
                raise

    async def create_all(self):
        """Create missing tables for every registered model"""
        from app import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("[DB] Connections closed")
        self.engine = None
        self.session_factory = None


# Global database manager instance
db_manager = DatabaseManager()


async def init_db():
    await db_manager.initialize()
    await db_manager.create_all()
    logger.info("[DB] Schema ready")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request"""
    if db_manager.session_factory is None:
        await db_manager.initialize()

    async with db_manager.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def close_db():
    await db_manager.close()


async def health_check() -> dict:
    return await db_manager.health_check()
