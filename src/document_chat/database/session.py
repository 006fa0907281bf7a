"""SQLAlchemy async session management for FastAPI."""

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from document_chat.database.connection import check_connection, close_engine, create_tables, get_engine

logger = logging.getLogger(__name__)

_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory bound to the global engine."""
    global _session_factory
    if _session_factory is None:
        # Services keep using ORM objects after commit (status transitions, responses)
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Services commit their own units of work (e.g. each document status
    change); whatever is still pending when the handler returns is
    committed here, and everything pending is rolled back if it raises.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables and verify connectivity."""
    await create_tables()
    if await check_connection():
        logger.info("Database ready")
    else:
        logger.warning("Database connection check failed")


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _session_factory
    await close_engine()
    _session_factory = None
    logger.info("Database connections closed")
