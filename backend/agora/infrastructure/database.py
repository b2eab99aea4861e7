"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - SQLAlchemy exceptions surface as DependencyFailureError (core/errors.py)

Design Decisions:
    - Built in the FastAPI lifespan only when repository_backend is "sql"
    - expire_on_commit=False: prevents lazy-load issues in async context
    - SQLite URLs skip the pool sizing arguments its pool does not accept
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from agora.core.errors import DependencyFailureError
from agora.db.base import Base
from agora import models  # noqa: F401  (populates Base.metadata)

logger = logging.getLogger(__name__)

# Most specific first; the first match names the failed operation
_OPERATIONS = (
    (IntegrityError, "commit"),
    (OperationalError, "execute"),
    (DBAPIError, "query"),
)


def _failed_operation(error: SQLAlchemyError) -> str:
    for error_type, operation in _OPERATIONS:
        if isinstance(error, error_type):
            return operation
    return "operation"


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        pool_args = {}
        if not database_url.startswith("sqlite"):
            pool_args = {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_recycle": 3600,
            }
        self.engine = create_async_engine(
            database_url, pool_pre_ping=True, **pool_args,
        )
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            operation = _failed_operation(e)
            logger.error(f"Database {operation} failed: {type(e).__name__}: {e}")
            raise DependencyFailureError("database", operation) from e
        finally:
            await session.close()

    async def create_schema(self) -> None:
        """create_all for tests and local runs; deployments use alembic."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness checks)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
