"""
Async SQLAlchemy engine and session factory.

Production uses ``asyncpg``; tests point ``create_session_factory`` at an
``aiosqlite`` file.  Every dispatch unit of work opens its own session
from the factory, so the pool has to cover concurrent matching runs on
top of API traffic.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def create_session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = create_session_factory(engine)
