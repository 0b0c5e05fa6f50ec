"""
Storage Port Interfaces

Abstract base class defining the durable agent-record contract.
All persistence APIs are async. No sync DB calls allowed.

These ports follow the hexagonal architecture pattern:
- Session code depends only on these interfaces
- Adapters (in-memory, SQLAlchemy, Redis) implement these interfaces
- Storage is injected via dependency inversion

Thread-safety: All implementations must be safe for concurrent async usage.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone


# =============================================================================
# Agent Store
# =============================================================================

@dataclass
class AgentRecord:
    """
    Stored agent identity.

    Written once at creation and never mutated afterwards.
    """
    agent_id: str
    name: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AgentStore(ABC):
    """
    Storage interface for agent identity records.

    Scoped per agent: every call addresses exactly one agent_id.
    """

    @abstractmethod
    async def create(self, record: AgentRecord) -> AgentRecord:
        """
        Persist a new agent record.

        Args:
            record: Agent identity to persist

        Returns:
            The stored record

        Raises:
            ConflictError: If a record with the same agent_id exists
            StorageError: If the write fails
        """
        ...

    @abstractmethod
    async def get(self, agent_id: str) -> AgentRecord | None:
        """
        Get an agent record.

        Args:
            agent_id: Agent identifier

        Returns:
            Agent record or None if not found
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of stored agent records."""
        ...


# =============================================================================
# Storage Bundle
# =============================================================================

@dataclass
class StorageBundle:
    """
    Container for storage adapters.

    Injected into the session registry via dependency inversion.
    """
    agents: AgentStore

    async def close(self) -> None:
        """
        Close all storage connections.

        Called during shutdown.
        """
        # Implementations should override to close DB connections, etc.
        pass


# =============================================================================
# Exceptions
# =============================================================================

class StorageError(Exception):
    """Base exception for storage errors."""
    pass


class ConflictError(StorageError):
    """Conflict during write (e.g., duplicate key)."""
    pass
