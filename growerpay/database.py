"""Database engine, session factory, and declarative base.

All payment tables share one DeclarativeBase.  The FastAPI dependency
get_db() yields a session that commits when the request succeeds and
rolls back when anything raises, so a failed reconciliation never leaves
half-written reports or exceptions behind.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from growerpay.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base class for all GrowerPay models."""
    pass


async def get_db() -> AsyncSession:
    """Yield a session scoped to one request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
