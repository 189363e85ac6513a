"""
Async engine and session plumbing for the Conduit store.

Users, articles, comments and the follow/favorite association tables all
live behind this one engine.  Every request gets its own session through
:func:`get_db`; services only ``flush`` and the request boundary decides
whether the unit of work commits.
"""
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.middleware import install_query_counter

# Tests swap in their own engine and override get_db instead of touching this one.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base shared by every table in :mod:`app.models`."""


async def get_db():
    """Yield a request-scoped session; commit on success, roll back on any error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
