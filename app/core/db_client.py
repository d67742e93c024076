"""
Async catalog database connection management using SQLAlchemy 2.0.

Supports:
- PostgreSQL through asyncpg (production)
- SQLite through aiosqlite (local development and tests)

A DatabaseManager is constructed by the application's composition root and
handed to the components that need it; there is no module-level instance.
"""

import asyncio
import logging
from typing import List

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import Settings
from app.models.orm import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the async engine and session factory for the document catalog."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
        echo: bool = False,
    ):
        self._url = make_url(database_url)
        self._engine: AsyncEngine = self._create_engine(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            echo=echo,
        )
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseManager":
        return cls(
            settings.resolved_database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            echo=settings.DB_ECHO,
        )

    @property
    def is_sqlite(self) -> bool:
        return self._url.get_backend_name() == "sqlite"

    def _create_engine(self, **options) -> AsyncEngine:
        # Log connection info without password - NEVER log credentials
        logger.info(
            "Creating database engine",
            extra={
                "backend": self._url.get_backend_name(),
                "host": self._url.host,
                "port": self._url.port,
                "database": self._url.database,
            },
        )

        if self.is_sqlite:
            engine = create_async_engine(
                self._url,
                echo=options["echo"],
                connect_args={"timeout": 15},
            )
            # WAL keeps readers unblocked while a slot transition holds the write lock
            event.listen(engine.sync_engine, "connect", _sqlite_on_connect)
            return engine

        return create_async_engine(
            self._url,
            pool_size=options["pool_size"],
            max_overflow=options["max_overflow"],
            pool_timeout=options["pool_timeout"],
            pool_recycle=options["pool_recycle"],
            pool_pre_ping=True,
            echo=options["echo"],
        )

    @property
    def session_factory(self) -> async_sessionmaker:
        return self._session_factory

    async def test_connection(self, timeout: float = 5.0) -> bool:
        """Test database connectivity with timeout."""
        try:
            async with asyncio.timeout(timeout):
                async with self._engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            return True
        except asyncio.TimeoutError:
            logger.error(f"Database connection test timed out after {timeout}s")
            return False
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    async def create_tables(self) -> None:
        """Create all catalog tables and indexes."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def drop_tables(self) -> None:
        """Drop all catalog tables (for testing only)."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database tables dropped")

    async def table_names(self) -> List[str]:
        """Names of the tables present in the connected database."""
        from sqlalchemy import inspect

        async with self._engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    async def close(self) -> None:
        """Dispose the engine and its pooled connections."""
        await self._engine.dispose()
        logger.info("Database connections closed")


def _sqlite_on_connect(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=15000")
    cursor.close()

