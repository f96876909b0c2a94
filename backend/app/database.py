"""Database engine, session factory, and declarative base.

Role assignments (users.role, project_members) live in the same schema as
the rest of the organization data; every row carries its organization_id.

Session dependency for FastAPI:
  - get_db()  → request-scoped AsyncSession, committed on success
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


def _engine_options(url: str) -> dict:
    # SQLite (local tooling) uses a non-queue pool that rejects sizing args
    if url.startswith("sqlite"):
        return {"echo": settings.debug}
    return {"echo": settings.debug, "pool_size": 20, "max_overflow": 10}


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Yield a session for the lifetime of one request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
