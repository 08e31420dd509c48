# ──── Usage Guide ────
# MODULE CODE (src/*/service.py, src/reporting/dispatcher.py):
#   Use async sessions: async_session_factory, get_db, get_async_db
#   Pattern: async with get_async_db() as session:
#                result = await session.execute(select(Model).where(...))
#
# Components that need a store (ReportGenerator, ReportDispatcher) take the
# session factory in their constructor. Pass async_session_factory in the app,
# a test factory in tests.

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from src.core.config import settings


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
            if isinstance(value, datetime.datetime):
                result[key] = value.isoformat()
            elif isinstance(value, datetime.date):
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


# ──── Single Async Engine (asyncpg in production, aiosqlite locally) ────
engine = create_async_engine(settings.async_database_url, echo=False, future=True)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


# ──── Session Providers (FastAPI Dependencies) ────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def get_async_db(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Session scope that commits on success and rolls back on error."""
    factory = session_factory or async_session_factory
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create every table registered on Base. Schema migrations are not managed here."""
    # Import models so they register on Base.metadata
    import src.escrow.database  # noqa: F401
    import src.audit.database  # noqa: F401
    import src.reporting.database  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──── End of Database Configuration ────
