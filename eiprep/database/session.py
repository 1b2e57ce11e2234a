"""
Database engine and session management.

This module provides functions for:
1. Creating the async engine from settings
2. Building the async session factory used by the SQL repository
3. Creating the schema directly (development and tests)
4. Upgrading a database with the bundled alembic migrations
"""

import os
from typing import Any, Dict, Optional

from alembic import command
from alembic.config import Config
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from eiprep.config import Settings, get_settings
from eiprep.common.logger import app_logger
from eiprep.database.base import metadata
# Register the models on the metadata
from eiprep.database import models  # noqa: F401

logger = app_logger.getChild("database.session")

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "alembic")


def get_engine_kwargs(database_url: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Get engine keyword arguments based on database type.

    SQLite uses the driver's default pool; other databases get a sized,
    pre-pinged connection pool.
    """
    settings = settings or get_settings()
    kwargs: Dict[str, Any] = {"echo": settings.SQL_ECHO}

    if not database_url.startswith("sqlite"):
        kwargs.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "pool_pre_ping": True,
            "pool_recycle": 300,  # Recycle connections every 5 minutes
        })

    return kwargs


def create_engine(database_url: Optional[str] = None, settings: Optional[Settings] = None) -> AsyncEngine:
    """
    Create an async engine.

    Args:
        database_url: Async SQLAlchemy URL, defaults to ``DATABASE_URL``
        settings: Settings to read pool options from
    """
    settings = settings or get_settings()
    database_url = database_url or settings.DATABASE_URL
    logger.info(f"Creating database engine for {make_url(database_url).get_backend_name()}")
    return create_async_engine(database_url, future=True, **get_engine_kwargs(database_url, settings))


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    """Session factory producing AsyncSession objects that survive commit."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create every table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("Database schema created")


async def drop_models(engine: AsyncEngine) -> None:
    """Drop every table of the schema."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


def sync_database_url(database_url: str) -> str:
    """
    Strip the async driver from a URL, e.g. ``sqlite+aiosqlite`` -> ``sqlite``.

    Alembic runs migrations synchronously.
    """
    url = make_url(database_url)
    return url.set(drivername=url.get_backend_name()).render_as_string(hide_password=False)


def run_migrations(database_url: Optional[str] = None, revision: str = "head") -> None:
    """
    Upgrade a database with the bundled migrations.

    Args:
        database_url: Database to upgrade (async or sync URL), defaults to ``DATABASE_URL``
        revision: Target revision
    """
    database_url = sync_database_url(database_url or get_settings().DATABASE_URL)
    config = Config()
    config.set_main_option("script_location", MIGRATIONS_DIR)
    config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    logger.info(f"Upgrading database to {revision}")
    command.upgrade(config, revision)
