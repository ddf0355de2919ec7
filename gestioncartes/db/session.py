"""Database handle and session dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from loguru import logger
from sqlalchemy.exc import TimeoutError as SATimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gestioncartes.config import Settings
from gestioncartes.db.base import Base


class Database:
    """
    Owns the async engine and its session factory.

    Created once at process start (application lifespan), passed to the
    components that need it, and disposed on shutdown.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
        )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.async_database_url, echo=settings.log_level == "DEBUG")

    async def create_all(self) -> None:
        """Create tables directly from metadata (local development and tests)."""
        # Registers every mapped class on Base.metadata
        import gestioncartes.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


def get_database(request: Request) -> Database:
    """Return the handle opened by the application lifespan."""
    return request.app.state.database


def get_session_factory(
    database: Database = Depends(get_database),
) -> async_sessionmaker[AsyncSession]:
    return database.session_factory


async def get_db(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Services open their own transaction on the session; the session is
    always closed here, whatever the outcome of the request.
    """
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except SATimeoutError as exc:
            logger.warning(
                "Database connection pool timeout (possible pool exhaustion)",
                error=str(exc),
            )
            await session.rollback()
            raise
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
