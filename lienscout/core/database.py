# ──── Usage Guide ────
# The pipeline core runs on an in-memory prospect index and never needs a database.
# Only "database" filing sources open an engine, one per source endpoint:
#
#   session_factory = create_session_factory(source.endpoint)
#   async with session_scope(session_factory) as session:
#       result = await session.execute(select(Model).where(...))
#
# URLs are upgraded to async drivers: postgresql:// -> postgresql+asyncpg://,
# sqlite:// -> sqlite+aiosqlite://.

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class ToDictMixin:
    """Mixin to add dictionary serialization to models."""
    def to_dict(self):
        """Convert model instance to dictionary."""
        from sqlalchemy import inspect
        import datetime
        from decimal import Decimal
        from enum import Enum

        result = {}
        for key in inspect(self).mapper.column_attrs.keys():
            value = getattr(self, key)
            if isinstance(value, (datetime.datetime, datetime.date)):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = float(value)
            elif isinstance(value, Enum):
                result[key] = value.value
            else:
                result[key] = value
        return result


class Base(ToDictMixin, DeclarativeBase):
    metadata = MetaData()


def to_async_url(url: str) -> str:
    """Swap a sync driver URL for its async equivalent."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def create_engine_for(url: str) -> AsyncEngine:
    return create_async_engine(to_async_url(url), echo=False, future=True)


def create_session_factory(url_or_engine) -> async_sessionmaker:
    engine = url_or_engine if isinstance(url_or_engine, AsyncEngine) else create_engine_for(url_or_engine)
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
