# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database connection and session management."""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from uraba_server.config import settings
from uraba_server.models.base import Base

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict[str, Any]:
    """Pool and TLS options for the configured backend."""
    if url.startswith("sqlite"):
        # Local files only (tests, development); connections are cheap
        return {"echo": False, "poolclass": NullPool}
    options: dict[str, Any] = {
        "echo": False,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }
    if settings.is_production:
        # Hosted Postgres: TLS required, certificate not pinned
        options["connect_args"] = {"ssl": "require"}
    return options


_database_url = settings.sqlalchemy_database_url

engine = create_async_engine(_database_url, **_engine_options(_database_url))

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI that yields a database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create all tables. Call at startup."""
    # Registers the mapped classes on Base.metadata
    from uraba_server import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(
        "Database ready (%s)",
        "remote, TLS required" if settings.is_production else "local",
    )
