"""
Storage Factory

Environment-based configuration and factory for storage adapters.
Returns a StorageBundle with the appropriate AgentStore for the settings.

Supported backends:
- memory: In-memory storage (development/testing)
- sqlite: SQLite with aiosqlite (single-node production)
- postgresql: PostgreSQL with asyncpg (distributed production)
- mysql: MySQL with aiomysql (distributed production)
- redis: Redis (shared agent identity across gateways)

Usage:
    # From environment
    bundle = await create_storage_from_env()

    # From settings
    settings = StorageSettings(database_url="postgresql+asyncpg://...")
    bundle = await create_storage(settings)

    # Use in the session registry
    registry = AgentSessionRegistry(store=bundle.agents)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)

from .ports import StorageBundle, AgentStore
from .memory import InMemoryAgentStore
from .sqlalchemy import SqlAlchemyAgentStore
from .models import Base


class StorageBackend(str, Enum):
    """Supported storage backends."""
    MEMORY = "memory"
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    REDIS = "redis"


@dataclass
class StorageSettings:
    """
    Configuration for storage layer.

    Attributes:
        backend: Storage backend type
        database_url: SQLAlchemy async connection URL (for SQL backends)
        redis_url: Redis connection URL (for the redis backend)
        pool_size: Connection pool size for SQL
        pool_max_overflow: Max overflow for connection pool
        echo_sql: Whether to log SQL queries
        create_tables: Whether to auto-create tables on startup
        key_prefix: Prefix for Redis keys
        agent_ttl_seconds: Optional TTL for agent records in Redis
    """
    backend: StorageBackend = StorageBackend.MEMORY
    database_url: str | None = None
    redis_url: str | None = None
    pool_size: int = 5
    pool_max_overflow: int = 10
    echo_sql: bool = False
    create_tables: bool = True
    key_prefix: str = "mathmcp"
    agent_ttl_seconds: int | None = None


@dataclass
class StorageBundleImpl(StorageBundle):
    """
    StorageBundle implementation with cleanup support.
    """
    agents: AgentStore
    _engine: AsyncEngine | None = field(default=None, repr=False)
    _redis: Any = field(default=None, repr=False)  # redis.asyncio.Redis

    async def close(self) -> None:
        """Close all storage connections."""
        if self._engine:
            await self._engine.dispose()
        if self._redis:
            await self._redis.aclose()


def _parse_database_url(url: str) -> StorageBackend:
    """Determine backend from database URL."""
    if url.startswith("sqlite"):
        return StorageBackend.SQLITE
    elif url.startswith("postgresql") or url.startswith("postgres"):
        return StorageBackend.POSTGRESQL
    elif url.startswith("mysql"):
        return StorageBackend.MYSQL
    else:
        raise ValueError(f"Unsupported database URL scheme: {url}")


def _async_url(backend: StorageBackend, url: str) -> str:
    """Ensure the async driver is named in the URL."""
    if backend == StorageBackend.SQLITE:
        if "+aiosqlite" not in url:
            url = url.replace("sqlite://", "sqlite+aiosqlite://")
    elif backend == StorageBackend.POSTGRESQL:
        if "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://")
            url = url.replace("postgres://", "postgresql+asyncpg://")
    elif backend == StorageBackend.MYSQL:
        if "+aiomysql" not in url:
            url = url.replace("mysql://", "mysql+aiomysql://")
    return url


def settings_from_env() -> StorageSettings:
    """
    Create StorageSettings from environment variables.

    Environment variables:
        MATHMCP_STORAGE_BACKEND: "memory", "sqlite", "postgresql", "mysql", "redis"
        MATHMCP_DATABASE_URL: SQLAlchemy async connection URL
        MATHMCP_REDIS_URL: Redis connection URL
        MATHMCP_POOL_SIZE: Connection pool size
        MATHMCP_ECHO_SQL: "true" to log SQL
        MATHMCP_CREATE_TABLES: "false" to disable table creation
        MATHMCP_KEY_PREFIX: Redis key prefix
        MATHMCP_AGENT_TTL: Redis agent record TTL in seconds
    """
    database_url = os.getenv("MATHMCP_DATABASE_URL")
    redis_url = os.getenv("MATHMCP_REDIS_URL")
    backend_str = os.getenv("MATHMCP_STORAGE_BACKEND", "memory")

    # Auto-detect backend from URL if provided
    if backend_str == "memory" and database_url:
        backend = _parse_database_url(database_url)
    elif backend_str == "memory" and redis_url:
        backend = StorageBackend.REDIS
    else:
        backend = StorageBackend(backend_str)

    agent_ttl = os.getenv("MATHMCP_AGENT_TTL")

    return StorageSettings(
        backend=backend,
        database_url=database_url,
        redis_url=redis_url,
        pool_size=int(os.getenv("MATHMCP_POOL_SIZE", "5")),
        pool_max_overflow=int(os.getenv("MATHMCP_POOL_MAX_OVERFLOW", "10")),
        echo_sql=os.getenv("MATHMCP_ECHO_SQL", "").lower() == "true",
        create_tables=os.getenv("MATHMCP_CREATE_TABLES", "true").lower() != "false",
        key_prefix=os.getenv("MATHMCP_KEY_PREFIX", "mathmcp"),
        agent_ttl_seconds=int(agent_ttl) if agent_ttl else None,
    )


async def create_storage(settings: StorageSettings) -> StorageBundle:
    """
    Create storage bundle from settings.

    Args:
        settings: Storage configuration

    Returns:
        Configured StorageBundle

    Raises:
        ValueError: If settings are invalid
    """
    if settings.backend == StorageBackend.MEMORY:
        return StorageBundleImpl(agents=InMemoryAgentStore())

    if settings.backend == StorageBackend.REDIS:
        if not settings.redis_url:
            raise ValueError("redis_url required for backend redis")

        from redis.asyncio import Redis
        from .redis import RedisAgentStore

        redis_client = Redis.from_url(settings.redis_url, decode_responses=False)
        return StorageBundleImpl(
            agents=RedisAgentStore(
                redis=redis_client,
                key_prefix=settings.key_prefix,
                ttl_seconds=settings.agent_ttl_seconds,
            ),
            _redis=redis_client,
        )

    # SQL backends
    if not settings.database_url:
        raise ValueError(
            f"database_url required for backend {settings.backend.value}"
        )

    url = _async_url(settings.backend, settings.database_url)
    engine_kwargs: dict[str, Any] = {"echo": settings.echo_sql}
    if settings.backend != StorageBackend.SQLITE:
        engine_kwargs["pool_size"] = settings.pool_size
        engine_kwargs["max_overflow"] = settings.pool_max_overflow

    engine = create_async_engine(url, **engine_kwargs)

    if settings.create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    return StorageBundleImpl(
        agents=SqlAlchemyAgentStore(session_factory),
        _engine=engine,
    )


async def create_storage_from_env() -> StorageBundle:
    """
    Create storage bundle from environment variables.

    Convenience function that combines settings_from_env() and create_storage().
    """
    settings = settings_from_env()
    return await create_storage(settings)


# Convenience for quick setup
async def create_memory_storage() -> StorageBundle:
    """Create in-memory storage bundle (for testing)."""
    return await create_storage(StorageSettings(backend=StorageBackend.MEMORY))


async def create_sqlite_storage(
    path: str = ":memory:",
    create_tables: bool = True,
) -> StorageBundle:
    """Create SQLite storage bundle."""
    url = f"sqlite+aiosqlite:///{path}"
    return await create_storage(StorageSettings(
        backend=StorageBackend.SQLITE,
        database_url=url,
        create_tables=create_tables,
    ))
