"""
Agent Session Registry

Explicit in-process map from agent id to AgentSession.

- create_agent mints an id, persists the identity, caches the session
- resolve maps an id to its session; the key is the id itself, so repeated
  resolutions of one id always reach the same instance
- sessions evicted from memory are rehydrated from the AgentStore on the
  next resolve
- a background loop evicts sessions that have no open legs and have been
  idle longer than the configured TTL
"""

import asyncio
import logging

from mathmcp.operations import OperationTable, create_default_table
from mathmcp.protocol.errors import (
    AgentNotFoundError,
    InvalidAgentIdError,
    TransportFailureError,
)
from mathmcp.session.agent import AgentSession, is_valid_agent_id, new_agent_id
from mathmcp.storage import AgentStore, ConflictError, StorageError

logger = logging.getLogger(__name__)

# Id collisions need the same millisecond and the same random suffix
_MAX_CREATE_ATTEMPTS = 3


class AgentSessionRegistry:
    """
    Owns every in-memory AgentSession.

    Thread-safe for async operations using an asyncio lock. The lock only
    guards the map; storage I/O happens outside it so that lookups for
    different agents never wait on each other's storage round trips.
    """

    def __init__(
        self,
        store: AgentStore,
        operations: OperationTable | None = None,
        idle_ttl_seconds: float = 900.0,
        cleanup_interval_seconds: float = 60.0,
        leg_queue_size: int = 200,
    ):
        """
        Initialize the registry.

        Args:
            store: Durable store for agent identity
            operations: Operation table shared by all sessions
            idle_ttl_seconds: Idle time after which a session without legs is evicted
            cleanup_interval_seconds: How often to check for idle sessions
            leg_queue_size: Outbound queue size per leg
        """
        self._store = store
        self._operations = operations or create_default_table()
        self._idle_ttl = idle_ttl_seconds
        self._cleanup_interval = cleanup_interval_seconds
        self._leg_queue_size = leg_queue_size

        # agent_id -> AgentSession
        self._sessions: dict[str, AgentSession] = {}

        self._lock = asyncio.Lock()

        self._cleanup_task: asyncio.Task | None = None

    @property
    def operations(self) -> OperationTable:
        return self._operations

    async def start(self) -> None:
        """Start background eviction task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Session registry eviction task started")

    async def stop(self) -> None:
        """Stop background eviction task and close every open leg."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Session registry eviction task stopped")

        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            await session.close_all_legs(code=1001, reason="Server shutting down")

    async def _cleanup_loop(self) -> None:
        """Periodically evict idle sessions."""
        while True:
            try:
                await asyncio.sleep(self._cleanup_interval)
                await self.evict_idle_sessions()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session eviction loop: {e}")

    async def evict_idle_sessions(self) -> list[str]:
        """
        Drop sessions with no open legs that have been idle past the TTL.

        Only the in-memory instance is dropped; the durable record stays.

        Returns:
            Evicted agent ids
        """
        async with self._lock:
            evicted = [
                agent_id
                for agent_id, session in self._sessions.items()
                if session.leg_count == 0 and session.idle_seconds >= self._idle_ttl
            ]
            for agent_id in evicted:
                del self._sessions[agent_id]

        for agent_id in evicted:
            logger.info(f"Session evicted after idle timeout: {agent_id}")
        return evicted

    async def create_agent(self, name: str | None = None) -> AgentSession:
        """
        Create a new agent with a freshly minted id.

        Raises:
            TransportFailureError: If the identity could not be persisted
        """
        for _ in range(_MAX_CREATE_ATTEMPTS):
            session = AgentSession(
                new_agent_id(),
                self._operations,
                self._store,
                leg_queue_size=self._leg_queue_size,
            )
            try:
                await session.initialize(name)
            except ConflictError:
                logger.warning(f"Agent id collision on {session.agent_id}, retrying")
                continue
            except StorageError as e:
                raise TransportFailureError(f"Error creating agent: {e}") from e

            async with self._lock:
                self._sessions[session.agent_id] = session
            return session

        raise TransportFailureError("Error creating agent: could not mint a unique id")

    async def resolve(self, agent_id: str) -> AgentSession:
        """
        Map an agent id to its session.

        Raises:
            InvalidAgentIdError: Malformed id (checked before any lookup)
            AgentNotFoundError: Well-formed id with no durable record
            TransportFailureError: Storage lookup failed
        """
        if not is_valid_agent_id(agent_id):
            raise InvalidAgentIdError()

        async with self._lock:
            session = self._sessions.get(agent_id)
            if session is not None:
                session.touch()
                return session

        try:
            record = await self._store.get(agent_id)
        except StorageError as e:
            raise TransportFailureError(f"Error resolving agent: {e}") from e

        if record is None:
            raise AgentNotFoundError(agent_id)

        rehydrated = AgentSession.from_record(
            record,
            self._operations,
            self._store,
            leg_queue_size=self._leg_queue_size,
        )
        async with self._lock:
            # A concurrent resolve may have won the race
            session = self._sessions.setdefault(agent_id, rehydrated)
            session.touch()

        if session is rehydrated:
            logger.info(f"Session rehydrated from storage: {agent_id}")
        return session

    async def get(self, agent_id: str) -> AgentSession | None:
        """In-memory lookup only; never touches storage."""
        async with self._lock:
            return self._sessions.get(agent_id)

    @property
    def session_count(self) -> int:
        """Number of sessions currently held in memory."""
        return len(self._sessions)

    @property
    def leg_count(self) -> int:
        """Total open legs across all sessions."""
        return sum(s.leg_count for s in self._sessions.values())
