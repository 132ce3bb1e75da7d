"""
Database session configuration.

One async engine serves both request handlers and the background
tracking tasks (publishers, notification writers). Request handlers get
a session through `get_db`; background tasks open their own from
`AsyncSessionLocal` so a slow tick never holds a request's session.
"""

import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from ridesafe.app.core.config import settings

logger = logging.getLogger("ridesafe.db")

# asyncpg raises socket errors (ConnectionRefusedError, ...) that SQLAlchemy
# does not wrap, so store boundaries catch both
STORE_ERRORS = (SQLAlchemyError, OSError)

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,  # publishers keep ticking across database restarts
)

# Session factory shared with the tracking registry
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Rolls back whatever the handler left uncommitted if it raised.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def safe_rollback(session: AsyncSession) -> None:
    """Roll back after a failed write, tolerating a connection that is already gone."""
    try:
        await session.rollback()
    except STORE_ERRORS:
        logger.warning("Rollback failed, connection discarded")
