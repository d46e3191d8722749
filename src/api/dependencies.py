"""FastAPI dependency injection helpers."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain.pricing import PricingEngine
from src.infrastructure.database import async_session_factory


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory for code that manages its own transactions (dispatch)."""
    return async_session_factory


def get_pricing_engine() -> PricingEngine:
    return PricingEngine(settings.pricing_rules())
