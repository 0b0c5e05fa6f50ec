"""Tests for the agent store adapters and the storage factory."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from pathlib import Path

import fakeredis.aioredis
import pytest

from mathmcp.storage import (
    AgentRecord,
    AgentStore,
    ConflictError,
    StorageError,
    StorageBackend,
    create_memory_storage,
    create_sqlite_storage,
    create_storage,
    StorageSettings,
    settings_from_env,
)
from mathmcp.storage.redis import RedisAgentStore

REDIS_URL = os.getenv("MATHMCP_TEST_REDIS_URL")


@pytest.fixture(params=["memory", "sqlite", "redis"])
async def agent_store(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncIterator[AgentStore]:
    if request.param == "redis":
        redis = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())
        yield RedisAgentStore(redis, key_prefix="mathmcp-test")
        await redis.aclose()
        return
    if request.param == "memory":
        bundle = await create_memory_storage()
    else:
        bundle = await create_sqlite_storage(str(tmp_path / "agents.db"))
    yield bundle.agents
    await bundle.close()


class TestAgentStore:
    async def test_create_and_get(self, agent_store: AgentStore) -> None:
        record = AgentRecord(agent_id="agent-1-abc", name="calculator")
        await agent_store.create(record)

        loaded = await agent_store.get("agent-1-abc")
        assert loaded is not None
        assert loaded.agent_id == "agent-1-abc"
        assert loaded.name == "calculator"
        assert loaded.created_at.tzinfo is not None

    async def test_get_missing(self, agent_store: AgentStore) -> None:
        assert await agent_store.get("agent-1-missing") is None

    async def test_duplicate_create(self, agent_store: AgentStore) -> None:
        await agent_store.create(AgentRecord(agent_id="agent-1-dup", name="first"))
        with pytest.raises(ConflictError):
            await agent_store.create(AgentRecord(agent_id="agent-1-dup", name="second"))

        loaded = await agent_store.get("agent-1-dup")
        assert loaded is not None
        assert loaded.name == "first"

    async def test_count(self, agent_store: AgentStore) -> None:
        assert await agent_store.count() == 0
        for i in range(3):
            await agent_store.create(AgentRecord(agent_id=f"agent-{i}-x", name="n"))
        assert await agent_store.count() == 3


async def test_sqlite_survives_reopen(tmp_path: Path) -> None:
    path = str(tmp_path / "agents.db")
    bundle = await create_sqlite_storage(path)
    await bundle.agents.create(AgentRecord(agent_id="agent-1-keep", name="durable"))
    await bundle.close()

    reopened = await create_sqlite_storage(path)
    try:
        loaded = await reopened.agents.get("agent-1-keep")
        assert loaded is not None
        assert loaded.name == "durable"
    finally:
        await reopened.close()


class TestRedisStore:
    async def test_create_storage_redis_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())
        monkeypatch.setattr("redis.asyncio.Redis.from_url", lambda url, **kwargs: fake)

        bundle = await create_storage(StorageSettings(
            backend=StorageBackend.REDIS,
            redis_url="redis://localhost:6379/0",
            agent_ttl_seconds=60,
        ))
        try:
            assert isinstance(bundle.agents, RedisAgentStore)
            await bundle.agents.create(AgentRecord(agent_id="agent-1-ttl", name="expiring"))
            ttl = await fake.ttl("mathmcp:agent:agent-1-ttl")
            assert 0 < ttl <= 60
            assert await fake.sismember("mathmcp:agents", "agent-1-ttl")
        finally:
            await bundle.close()

    async def test_redis_backend_requires_url(self) -> None:
        with pytest.raises(ValueError):
            await create_storage(StorageSettings(backend=StorageBackend.REDIS))

    async def test_redis_errors_become_storage_errors(self) -> None:
        store = RedisAgentStore(fakeredis.aioredis.FakeRedis(connected=False))
        with pytest.raises(StorageError):
            await store.create(AgentRecord(agent_id="agent-1-down", name="n"))
        with pytest.raises(StorageError):
            await store.get("agent-1-down")
        with pytest.raises(StorageError):
            await store.count()


@pytest.mark.skipif(not REDIS_URL, reason="MATHMCP_TEST_REDIS_URL not set")
async def test_redis_store() -> None:
    bundle = await create_storage(StorageSettings(
        backend=StorageBackend.REDIS,
        redis_url=REDIS_URL,
        key_prefix="mathmcp-test",
        agent_ttl_seconds=60,
    ))
    try:
        record = AgentRecord(agent_id="agent-1-redis", name="shared")
        await bundle.agents.create(record)
        with pytest.raises(ConflictError):
            await bundle.agents.create(record)
        loaded = await bundle.agents.get("agent-1-redis")
        assert loaded is not None
        assert loaded.name == "shared"
    finally:
        await bundle.close()


class TestSettings:
    def test_defaults_to_memory(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("MATHMCP_STORAGE_BACKEND", "MATHMCP_DATABASE_URL", "MATHMCP_REDIS_URL"):
            monkeypatch.delenv(name, raising=False)
        assert settings_from_env().backend == StorageBackend.MEMORY

    def test_backend_detected_from_database_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MATHMCP_STORAGE_BACKEND", raising=False)
        monkeypatch.setenv("MATHMCP_DATABASE_URL", "postgresql://localhost/mathmcp")
        assert settings_from_env().backend == StorageBackend.POSTGRESQL

    def test_backend_detected_from_redis_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MATHMCP_STORAGE_BACKEND", raising=False)
        monkeypatch.delenv("MATHMCP_DATABASE_URL", raising=False)
        monkeypatch.setenv("MATHMCP_REDIS_URL", "redis://localhost:6379/0")
        settings = settings_from_env()
        assert settings.backend == StorageBackend.REDIS
        assert settings.key_prefix == "mathmcp"

    async def test_sql_backend_requires_url(self) -> None:
        with pytest.raises(ValueError):
            await create_storage(StorageSettings(backend=StorageBackend.SQLITE))
