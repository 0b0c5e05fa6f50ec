"""
SQLAlchemy Storage Adapter

Async SQLAlchemy 2.0 implementation for production persistence.
Uses async engine and session for all operations.

Compatible with:
- SQLite (aiosqlite)
- PostgreSQL (asyncpg)
- MySQL (aiomysql)

All operations are async. No sync DB calls.
"""

from datetime import timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mathmcp.storage.ports import (
    AgentStore,
    AgentRecord,
    ConflictError,
    StorageError,
)
from mathmcp.storage.models import AgentModel


# =============================================================================
# Converters
# =============================================================================

def agent_model_to_record(model: AgentModel) -> AgentRecord:
    """Convert SQLAlchemy model to port record."""
    created_at = model.created_at
    # SQLite drops tzinfo on round trip
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return AgentRecord(
        agent_id=model.agent_id,
        name=model.name,
        created_at=created_at,
    )


def agent_record_to_model(record: AgentRecord) -> AgentModel:
    """Convert port record to SQLAlchemy model."""
    return AgentModel(
        agent_id=record.agent_id,
        name=record.name,
        created_at=record.created_at,
    )


# =============================================================================
# Agent Store
# =============================================================================

class SqlAlchemyAgentStore(AgentStore):
    """
    SQLAlchemy implementation of agent storage.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, record: AgentRecord) -> AgentRecord:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    existing = await session.get(AgentModel, record.agent_id)
                    if existing:
                        raise ConflictError(f"Agent {record.agent_id} already exists")
                    session.add(agent_record_to_model(record))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create agent {record.agent_id}: {e}") from e
        return record

    async def get(self, agent_id: str) -> AgentRecord | None:
        try:
            async with self._session_factory() as session:
                model = await session.get(AgentModel, agent_id)
                if model is None:
                    return None
                return agent_model_to_record(model)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load agent {agent_id}: {e}") from e

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(AgentModel))
            return int(result.scalar_one())
