"""Async engine and session factory shared by the call repositories."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from callscribe.config.settings import settings
from callscribe.models import Base, Call, Transcription  # noqa: F401 - registers tables
from callscribe.services.retry import retryable

logger = logging.getLogger(__name__)


def _create_engine() -> AsyncEngine:
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if settings.database.serverless or settings.debug:
        # Serverless Postgres pauses idle instances; pooled connections would go stale.
        options["poolclass"] = NullPool
    return create_async_engine(settings.database.url, **options)


engine: AsyncEngine = _create_engine()

# Repositories open one short session per operation, so objects must stay
# readable after commit.
SessionFactory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


# Postgres may still be starting when the app container comes up.
@retryable(max_attempts=5, initial_delay=1.0, label="database startup")
async def init_models(target: AsyncEngine | None = None) -> None:
    """Create the calls and transcriptions tables when missing."""

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


async def dispose_engine() -> None:
    await engine.dispose()
