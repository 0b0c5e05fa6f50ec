"""
Agent Session

One instance per created agent. Owns:
- the agent's identity (id, name), persisted once to the AgentStore
- the collection of open legs, keyed by leg id
- the dispatch routine both transports funnel through

Leg lifecycle:
1. accept_connection - upgrade accepted, leg registered, `connected` sent
2. on_leg_message    - mcp_request -> mcp_response, ping -> pong,
                       anything else -> error (leg stays open)
3. close_leg         - explicit close or transport error; idempotent

All mutations of the leg collection happen under the session's lock.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

from fastapi import WebSocket

from mathmcp.operations import OperationTable
from mathmcp.protocol.errors import MalformedRequestError, OperationError
from mathmcp.protocol.frames import (
    FrameType,
    OperationRequest,
    ServerFrame,
    create_connected,
    create_error,
    create_mcp_response,
    create_pong,
    parse_client_frame,
)
from mathmcp.session.leg import Leg
from mathmcp.storage import AgentRecord, AgentStore

logger = logging.getLogger(__name__)

AGENT_ID_PREFIX = "agent-"
DEFAULT_AGENT_NAME = "anonymous"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def new_agent_id() -> str:
    """Mint `agent-<epoch millis>-<random base36>`."""
    timestamp = int(time.time() * 1000)
    random_part = _base36(uuid4().int)[:11]
    return f"{AGENT_ID_PREFIX}{timestamp}-{random_part}"


def is_valid_agent_id(agent_id: Any) -> bool:
    """Structural check only: a string carrying the agent prefix."""
    return (
        isinstance(agent_id, str)
        and agent_id.startswith(AGENT_ID_PREFIX)
        and len(agent_id) > len(AGENT_ID_PREFIX)
    )


@dataclass
class DispatchOutcome:
    """
    Result of dispatching one operation request.

    Exactly one of `result` / `error` is set. Failures are returned, not
    raised, so that neither transport has to catch operation errors.
    """
    method: str
    result: dict[str, Any] | None = None
    error: OperationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_payload(self) -> dict[str, Any]:
        """Body placed in `result` of the HTTP reply."""
        if self.error is not None:
            return self.error.to_dict()
        return self.result or {}


class AgentSession:
    """
    A named session that owns zero or more legs and exposes dispatch.
    """

    def __init__(
        self,
        agent_id: str,
        operations: OperationTable,
        store: AgentStore,
        leg_queue_size: int = 200,
    ):
        """
        Args:
            agent_id: Agent identifier (already minted)
            operations: Shared operation table
            store: Durable store for the agent record
            leg_queue_size: Outbound queue size per leg
        """
        self.agent_id = agent_id
        self._operations = operations
        self._store = store
        self._leg_queue_size = leg_queue_size

        self._name: str | None = None
        self._created_at: datetime | None = None

        self._legs: dict[str, Leg] = {}
        self._lock = asyncio.Lock()

        self._last_activity = time.monotonic()

    # =========================================================================
    # Identity
    # =========================================================================

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def created_at(self) -> datetime | None:
        return self._created_at

    async def initialize(self, name: str | None = None) -> str:
        """
        Persist the agent identity. Called once, at creation.

        Returns:
            The agent id

        Raises:
            StorageError: If the record could not be written
        """
        record = AgentRecord(agent_id=self.agent_id, name=name or DEFAULT_AGENT_NAME)
        record = await self._store.create(record)
        self._apply_record(record)
        logger.info(f"Agent created: {self.agent_id} (name: {self._name})")
        return self.agent_id

    @classmethod
    def from_record(
        cls,
        record: AgentRecord,
        operations: OperationTable,
        store: AgentStore,
        leg_queue_size: int = 200,
    ) -> "AgentSession":
        """Rehydrate a session from its durable record."""
        session = cls(record.agent_id, operations, store, leg_queue_size)
        session._apply_record(record)
        return session

    def _apply_record(self, record: AgentRecord) -> None:
        self._name = record.name
        self._created_at = record.created_at

    def describe(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "name": self._name,
            "connections": len(self._legs),
            "createdAt": self._created_at.isoformat() if self._created_at else None,
        }

    # =========================================================================
    # Activity
    # =========================================================================

    def touch(self) -> None:
        self._last_activity = time.monotonic()

    @property
    def idle_seconds(self) -> float:
        return time.monotonic() - self._last_activity

    @property
    def leg_count(self) -> int:
        return len(self._legs)

    @property
    def leg_ids(self) -> list[str]:
        return list(self._legs)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def dispatch(self, request: OperationRequest) -> DispatchOutcome:
        """
        Execute an operation request against the operation table.

        Never raises OperationError; failures come back on the outcome,
        tagged with the method name.
        """
        self.touch()
        try:
            result = self._operations.dispatch(request.method, request.params)
        except OperationError as e:
            logger.debug(f"Agent {self.agent_id}: {request.method} failed: {e.message}")
            return DispatchOutcome(method=request.method, error=e)
        return DispatchOutcome(method=request.method, result=result)

    # =========================================================================
    # Legs
    # =========================================================================

    async def accept_connection(self, websocket: WebSocket) -> str:
        """
        Accept a WebSocket upgrade and register it as a new leg.

        Sends the `connected` announcement on the new leg.

        Returns:
            The new leg id
        """
        await websocket.accept()

        async with self._lock:
            leg_id = str(uuid4())
            while leg_id in self._legs:
                leg_id = str(uuid4())

            leg = Leg(
                leg_id,
                websocket,
                max_queue_size=self._leg_queue_size,
                on_failure=self.on_leg_error,
            )
            await leg.start()
            self._legs[leg_id] = leg

        self.touch()
        leg.send(create_connected(leg_id, self.agent_id))
        logger.info(f"Leg {leg_id} opened for agent {self.agent_id} ({len(self._legs)} open)")
        return leg_id

    async def on_leg_message(self, leg_id: str, raw: str | bytes) -> None:
        """
        Handle one raw frame received on a leg.

        Every outcome produces exactly one reply on the same leg. The leg is
        never closed because of a bad frame.
        """
        self.touch()
        try:
            frame = parse_client_frame(raw)
        except MalformedRequestError as e:
            logger.warning(f"Malformed frame on leg {leg_id}: {e.message}")
            self._reply(leg_id, create_error(e.message))
            return

        try:
            if frame.type == FrameType.PING.value:
                self._reply(leg_id, create_pong())
                return

            outcome = self.dispatch(frame.request)
            if outcome.ok:
                self._reply(leg_id, create_mcp_response(outcome.result))
            else:
                self._reply(leg_id, create_error(outcome.error.message))

        except Exception as e:
            logger.error(f"Error handling frame on leg {leg_id}: {e}")
            self._reply(leg_id, create_error(str(e) or "Internal error"))

    def _reply(self, leg_id: str, frame: ServerFrame) -> bool:
        """Send on one leg. A reply for a leg that is gone is dropped."""
        leg = self._legs.get(leg_id)
        if leg is None:
            logger.debug(f"Leg {leg_id} closed, dropping {frame.type} reply")
            return False
        return leg.send(frame)

    async def close_leg(self, leg_id: str, code: int = 1000, reason: str = "") -> bool:
        """
        Remove a leg and close its socket.

        Returns:
            True if the leg was open, False if it was already removed
        """
        async with self._lock:
            leg = self._legs.pop(leg_id, None)
        if leg is None:
            return False

        self.touch()
        await leg.close(code=code, reason=reason)
        logger.info(f"Leg {leg_id} closed for agent {self.agent_id} ({len(self._legs)} open)")
        return True

    async def on_leg_error(self, leg_id: str) -> None:
        """Transport failure on a leg."""
        logger.warning(f"Transport error on leg {leg_id} (agent {self.agent_id})")
        await self.close_leg(leg_id, code=1011, reason="Transport error")

    async def broadcast(self, frame: ServerFrame) -> int:
        """
        Send a frame to every open leg.

        A leg that cannot take the frame is skipped; the others still get it.

        Returns:
            Number of legs the frame was queued on
        """
        async with self._lock:
            legs = list(self._legs.values())

        delivered = 0
        for leg in legs:
            try:
                if leg.send(frame):
                    delivered += 1
            except Exception as e:
                logger.warning(f"Broadcast to leg {leg.leg_id} failed: {e}")
        return delivered

    async def close_all_legs(self, code: int = 1001, reason: str = "") -> int:
        """Close every open leg. Used on eviction and shutdown."""
        async with self._lock:
            legs = list(self._legs.values())
            self._legs.clear()

        for leg in legs:
            await leg.close(code=code, reason=reason)
        return len(legs)
