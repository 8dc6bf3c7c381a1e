"""SQLAlchemy 2.0 async engine, session factory, and declarative base.

Backs the local data service with a SQLite file through ``aiosqlite``.  The
hosted deployment talks to Supabase instead and never touches this module.

Usage::

    from pbportal.database import create_session_factory, init_models

    engine, session_factory = create_session_factory("sqlite+aiosqlite:///./pb.db")
    await init_models(engine)
    async with session_factory() as session:
        ...
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from pbportal import config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Declarative Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy ORM models."""

    pass


# ---------------------------------------------------------------------------
# Engine + Session Factory
# ---------------------------------------------------------------------------
def create_session_factory(
    database_url: str | None = None,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build an async engine and session factory for *database_url*.

    Falls back to ``LOCAL_DATABASE_URL`` from the environment.
    """
    url = database_url or config.LOCAL_DATABASE_URL
    engine_kwargs: dict = {"echo": config.SQLALCHEMY_ECHO}
    if url.startswith("sqlite"):
        # aiosqlite connections are bound to the loop that opened them
        engine_kwargs["poolclass"] = NullPool
    engine = create_async_engine(url, **engine_kwargs)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("SQLAlchemy async engine configured for %s", url.split("://")[0])
    return engine, session_factory


async def init_models(engine: AsyncEngine) -> None:
    """Create every table registered on ``Base.metadata`` if missing."""
    # Importing the package registers all models with the metadata
    import pbportal.models.db  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
