from typing import AsyncGenerator
import logging
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def get_engine() -> AsyncEngine:
    """Create and return the async SQLAlchemy engine.

    Returns:
        Async engine instance.
    """

    return create_async_engine(str(settings.DB_URL), echo=False, poolclass=NullPool)


engine = get_engine()
SessionLocal = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an `AsyncSession` and ensures cleanup.

    Yields:
        AsyncSession: Database session for request scope.
    """

    async with SessionLocal() as session:
        try:
            yield session
        except Exception as exc:
            await session.rollback()
            # Expected auth failures are not session errors
            if isinstance(exc, HTTPException) and exc.status_code < 500:
                logger.debug("Request aborted with HTTP %s: %s", exc.status_code, exc.detail)
            else:
                logger.exception("DB session error: %s", exc)
            raise
