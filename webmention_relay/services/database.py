"""SQLite engine and unit-of-work sessions for the mention store."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import DatabaseConfig
from ..orm.base import Base

logger = logging.getLogger(__name__)


class DatabaseService:
    """Owns the aiosqlite engine shared by every store operation.

    Each ``session()`` is one transaction: committed when the block exits,
    rolled back if it raises. Concurrent writers wait on SQLite's busy
    timeout instead of failing.
    """

    def __init__(self, database_path: str | Path, echo: bool = False, busy_timeout: float = 30.0):
        self.database_path = Path(database_path).expanduser()
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine: AsyncEngine = create_async_engine(
            f"sqlite+aiosqlite:///{self.database_path}",
            echo=echo,
            connect_args={"timeout": busy_timeout},
        )
        event.listen(self.engine.sync_engine, "connect", self._configure_connection)

        self.async_session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "DatabaseService":
        return cls(config.path, echo=config.echo, busy_timeout=config.busy_timeout)

    @staticmethod
    def _configure_connection(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        # ON DELETE CASCADE from entries to mentions needs this per connection
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async def initialize(self):
        """Create the entries and mentions tables if missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Schema ready at %s", self.database_path)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """One transaction, committed on success and rolled back on error."""
        async with self.async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def count(self, model) -> int:
        """Number of rows of an ORM model."""
        async with self.session() as session:
            result = await session.execute(select(func.count()).select_from(model))
            return result.scalar_one()

    async def close(self):
        await self.engine.dispose()


_db_service: Optional[DatabaseService] = None


def get_db_service() -> DatabaseService:
    """Get the process-wide database service."""
    if _db_service is None:
        raise RuntimeError("Database service not initialized")
    return _db_service


async def init_db_service(config: DatabaseConfig) -> DatabaseService:
    """Create the process-wide database service and its schema."""
    global _db_service
    _db_service = DatabaseService.from_config(config)
    await _db_service.initialize()
    return _db_service
