"""
Database engine and session lifecycle.

A single Database object is created at process start (application lifespan),
stored on app.state and disposed on shutdown. Nothing here is a module-level
engine, so tests and workers can open their own instance.
"""

from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from stayhub.core.config import get_settings
from stayhub.core.logging import get_logger

logger = get_logger(__name__)


class Database:
    """Owns the async engine and the session factory."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    def connect(self) -> None:
        if self.engine is not None:
            return

        settings = get_settings()
        kwargs = {"echo": self.echo, "pool_pre_ping": True}
        if make_url(self.url).get_backend_name() != "sqlite":
            kwargs.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_recycle=settings.DB_POOL_RECYCLE,
            )

        self.engine = create_async_engine(self.url, **kwargs)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        logger.info("database_connected", backend=make_url(self.url).get_backend_name())

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.sessionmaker = None
            logger.info("database_disposed")

    def session(self) -> AsyncSession:
        if self.sessionmaker is None:
            raise RuntimeError("Database is not connected")
        return self.sessionmaker()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Services commit their own units of work."""
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
