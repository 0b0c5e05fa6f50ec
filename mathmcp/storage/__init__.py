# Storage Layer
# Pluggable persistence for durable agent identity
#
# This module provides:
# - Port interface (ABC) defining the agent store contract
# - In-memory implementation for development/testing
# - SQLAlchemy implementation for production persistence
# - Redis implementation for shared state across gateways
# - Factory for configuration-based adapter selection

from .ports import (
    AgentStore,
    AgentRecord,
    StorageBundle,
    StorageError,
    ConflictError,
)
from .memory import InMemoryAgentStore
from .factory import (
    StorageSettings,
    StorageBackend,
    create_storage,
    create_storage_from_env,
    create_memory_storage,
    create_sqlite_storage,
    settings_from_env,
)

__all__ = [
    # Ports
    "AgentStore",
    "AgentRecord",
    "StorageBundle",
    "StorageError",
    "ConflictError",
    "InMemoryAgentStore",
    # Factory
    "StorageSettings",
    "StorageBackend",
    "create_storage",
    "create_storage_from_env",
    "create_memory_storage",
    "create_sqlite_storage",
    "settings_from_env",
]
