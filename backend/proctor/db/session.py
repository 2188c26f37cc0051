"""Database session management."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from proctor.db.base import Base
from proctor.db.engine import get_engine


def make_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine`` (default: the global engine)."""
    return async_sessionmaker(
        engine or get_engine(),
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,  # Prevent lazy loading issues
    )


async def init_models(engine: AsyncEngine | None = None) -> None:
    """Create all tables. Used by the seed script and tests."""
    import proctor.models  # noqa: F401  (register tables on Base.metadata)

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
