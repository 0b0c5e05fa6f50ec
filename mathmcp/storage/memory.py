"""
In-Memory Storage Adapter

Thread-safe implementation for development and testing.
Uses an asyncio lock for concurrent async safety.

Records are lost on restart. Use for:
- Local development
- Unit/integration testing
- Single-node deployments without persistence requirements
"""

import asyncio

from mathmcp.storage.ports import AgentStore, AgentRecord, ConflictError


class InMemoryAgentStore(AgentStore):
    """
    In-memory agent storage.

    Uses dict with asyncio.Lock for thread-safety.
    """

    def __init__(self):
        self._agents: dict[str, AgentRecord] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: AgentRecord) -> AgentRecord:
        async with self._lock:
            if record.agent_id in self._agents:
                raise ConflictError(f"Agent {record.agent_id} already exists")
            self._agents[record.agent_id] = record
            return record

    async def get(self, agent_id: str) -> AgentRecord | None:
        async with self._lock:
            return self._agents.get(agent_id)

    async def count(self) -> int:
        async with self._lock:
            return len(self._agents)
