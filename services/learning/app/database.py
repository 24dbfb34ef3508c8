"""Session plumbing for the learning service.

One process-wide ``async_sessionmaker``; each request gets its own session
and transaction via ``get_db``.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

# Register every mapped class on Base.metadata (create_all, Alembic)
import app.models  # noqa: F401
from shared.database import AsyncSessionFactory, dispose_session_factory, get_async_session_factory

_session_factory: AsyncSessionFactory | None = None


def init_db(database_url: str) -> None:
    set_session_factory(get_async_session_factory(database_url))


def set_session_factory(factory: AsyncSessionFactory) -> None:
    """Install a pre-built factory (tests, scripts sharing one engine)."""
    global _session_factory
    _session_factory = factory


def get_session_factory() -> AsyncSessionFactory:
    if _session_factory is None:
        raise RuntimeError("Database not initialized; call init_db() first")
    return _session_factory


async def dispose_db() -> None:
    global _session_factory
    if _session_factory is not None:
        await dispose_session_factory(_session_factory)
        _session_factory = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Commit when the handler returns normally, roll back if it raises."""
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()
