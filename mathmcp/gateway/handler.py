"""
WebSocket Handler

Drives the receive side of one leg. The gateway resolves the agent session
and hands the socket over; from then on every frame goes to the session:

1. session.accept_connection  -> leg registered, `connected` sent
2. receive loop               -> session.on_leg_message per frame
3. disconnect / error         -> session.close_leg

Each connection runs in its own task, so a slow frame on one leg never
delays frames on another.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect

from mathmcp.session import AgentSession

logger = logging.getLogger(__name__)


class WebSocketHandler:
    """
    Receive loop for agent legs.

    Stateless: the same handler serves every connection.
    """

    def __init__(self, leg_idle_timeout_seconds: float | None = None):
        """
        Args:
            leg_idle_timeout_seconds: Close a leg after this many seconds
                without a client frame. None disables the timeout, so legs
                stay open however long the client is silent.
        """
        self._idle_timeout = leg_idle_timeout_seconds

    async def handle_connection(self, websocket: WebSocket, session: AgentSession) -> None:
        """
        Handle a leg for its whole lifetime.

        Args:
            websocket: Not yet accepted WebSocket
            session: Resolved agent session that will own the leg
        """
        leg_id = await session.accept_connection(websocket)

        try:
            while True:
                data = await self._receive_frame(websocket)
                if data is None:
                    break
                await session.on_leg_message(leg_id, data)

        except WebSocketDisconnect as e:
            logger.info(f"Leg {leg_id} disconnected (code {e.code})")

        except asyncio.TimeoutError:
            logger.info(f"Leg {leg_id} idle for {self._idle_timeout}s, closing")
            await session.close_leg(leg_id, code=1001, reason="Idle timeout")

        except Exception as e:
            logger.error(f"WebSocket error on leg {leg_id}: {e}")
            await session.on_leg_error(leg_id)

        finally:
            await session.close_leg(leg_id)

    async def _receive_frame(self, websocket: WebSocket) -> str | bytes | None:
        """
        Receive one text or binary frame.

        Returns:
            Frame data, or None when the client disconnected

        Raises:
            asyncio.TimeoutError: If the idle timeout elapsed
        """
        if self._idle_timeout is not None:
            message = await asyncio.wait_for(websocket.receive(), self._idle_timeout)
        else:
            message = await websocket.receive()

        if message["type"] == "websocket.disconnect":
            logger.debug(f"Client disconnect (code {message.get('code')})")
            return None

        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""
