import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.config.settings import settings
from src.database.base import Base
from src.shared.utils import LOG_LEVEL


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    database_url = database_url or settings.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL is not set in environment variables.")

    if database_url.startswith("sqlite"):
        # Local/dev databases: no pool tuning, no asyncpg connect args
        return create_async_engine(database_url, echo=LOG_LEVEL == logging.DEBUG)

    return create_async_engine(
        database_url,
        echo=LOG_LEVEL == logging.DEBUG,
        # Connection pool settings
        pool_size=settings.DB_POOL_SIZE,  # Number of permanent connections
        max_overflow=settings.DB_MAX_OVERFLOW,  # Additional connections that can be created
        pool_timeout=settings.DB_POOL_TIMEOUT,  # Seconds to wait for connection from pool
        pool_recycle=settings.DB_POOL_RECYCLE,  # Recycle connections after N seconds
        pool_pre_ping=True,  # Validate connections before using them
        # asyncpg-specific settings
        connect_args={
            "command_timeout": settings.DB_COMMAND_TIMEOUT,  # Query timeout in seconds
            "server_settings": {
                "jit": "off",  # Disable JIT for better performance on short queries
                "application_name": "inventory_service",  # For monitoring
            },
        },
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_all_tables(engine: AsyncEngine) -> None:
    # Import models so every table is registered on Base.metadata
    import src.database.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
