"""Database configuration, connection and transaction management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from chat_core import config
from chat_core.errors import Conflict, Unavailable

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


# Database configuration from environment variables
DATABASE_URL = config.DATABASE_URL
if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")

# Create async engine
engine = create_async_engine(DATABASE_URL, echo=config.SQL_DEBUG, future=True)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Run the enclosed writes as one unit of work.

    Commits when the block finishes and rolls back on any error, so callers
    never observe a partially applied operation. Uniqueness violations are
    reported as ``Conflict``; any other storage failure as ``Unavailable``.
    """
    try:
        yield session
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise Conflict("Concurrent write violated a uniqueness constraint") from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("Storage failure, transaction rolled back")
        raise Unavailable("Storage engine failure") from e
    except BaseException:
        await session.rollback()
        raise


async def init_db() -> None:
    """Initialize database connection on startup."""
    if config.DB_AUTO_CREATE:
        # Development convenience; production schemas are managed by Alembic
        from chat_core.models import db  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created")


async def close_db() -> None:
    """Close database connections on shutdown."""
    await engine.dispose()
