"""Async engine, session factory and the declarative base shared by all models.

Timestamps are stored as naive UTC. :func:`utcnow` is the only clock the
services read, which keeps retention cutoffs and "today" comparisons in one
timezone.
"""

import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from frontdesk.config import settings

_url = settings.async_database_url

# SQLite manages its own connections; pool sizing is for PostgreSQL only
_pool_options = {} if _url.startswith("sqlite") else {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}

engine = create_async_engine(_url, echo=settings.debug, **_pool_options)

# Objects stay readable after commit so responses can be built from them
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    """``created_at`` is indexed: archival and reporting both filter on it."""

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), index=True)
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session: committed when the handler returns, rolled back if it raises."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
