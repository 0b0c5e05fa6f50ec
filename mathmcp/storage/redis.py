"""
Redis Storage Adapter

Redis-based implementation of AgentStore.
Ideal for:
- Sharing agent identity across several gateway processes
- Optional TTL on agent records so abandoned agents expire

Uses redis.asyncio for async operations.

Key patterns:
- {prefix}:agent:{agent_id} -> JSON-encoded AgentRecord
- {prefix}:agents -> SET of agent_ids (for count)
"""

from __future__ import annotations

import json
from datetime import datetime

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .ports import AgentStore, AgentRecord, ConflictError, StorageError


# =============================================================================
# Serialization Helpers
# =============================================================================

def _serialize_record(record: AgentRecord) -> str:
    return json.dumps({
        "agent_id": record.agent_id,
        "name": record.name,
        "created_at": record.created_at.isoformat(),
    })


def _deserialize_record(data: str | bytes) -> AgentRecord:
    d = json.loads(data)
    return AgentRecord(
        agent_id=d["agent_id"],
        name=d["name"],
        created_at=datetime.fromisoformat(d["created_at"]),
    )


# =============================================================================
# Redis Agent Store
# =============================================================================

class RedisAgentStore(AgentStore):
    """
    Redis-based agent store.

    Creation uses SET NX so two gateways can never overwrite the same id.
    """

    def __init__(
        self,
        redis: Redis,
        key_prefix: str = "mathmcp",
        ttl_seconds: int | None = None,
    ) -> None:
        """
        Initialize Redis agent store.

        Args:
            redis: Redis async client
            key_prefix: Prefix for all keys
            ttl_seconds: Optional expiry for agent records (None = keep forever)
        """
        self._redis = redis
        self._prefix = key_prefix
        self._ttl = ttl_seconds

    def _agent_key(self, agent_id: str) -> str:
        return f"{self._prefix}:agent:{agent_id}"

    def _index_key(self) -> str:
        return f"{self._prefix}:agents"

    async def create(self, record: AgentRecord) -> AgentRecord:
        try:
            created = await self._redis.set(
                self._agent_key(record.agent_id),
                _serialize_record(record),
                nx=True,
                ex=self._ttl,
            )
            if not created:
                raise ConflictError(f"Agent {record.agent_id} already exists")
            await self._redis.sadd(self._index_key(), record.agent_id)
        except RedisError as e:
            raise StorageError(f"Failed to create agent {record.agent_id}: {e}") from e
        return record

    async def get(self, agent_id: str) -> AgentRecord | None:
        try:
            data = await self._redis.get(self._agent_key(agent_id))
        except RedisError as e:
            raise StorageError(f"Failed to load agent {agent_id}: {e}") from e
        if data is None:
            return None
        return _deserialize_record(data)

    async def count(self) -> int:
        try:
            return int(await self._redis.scard(self._index_key()))
        except RedisError as e:
            raise StorageError(f"Failed to count agents: {e}") from e
