"""Database engine configuration."""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from proctor.core.config import settings


def create_db_engine(url: str | None = None) -> AsyncEngine:
    """Create async SQLAlchemy engine."""
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.DB_ECHO)
    return create_async_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
        echo=settings.DB_ECHO,
    )


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Process-wide engine, built on first use so imports never need a driver."""
    return create_db_engine()
