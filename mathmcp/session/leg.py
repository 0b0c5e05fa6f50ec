"""
Connection Leg

One accepted WebSocket bound to an agent, with its own outbound queue.

Design:
- Each leg gets a dedicated asyncio.Queue
- Single writer coroutine drains the queue and sends to the WebSocket,
  so concurrent replies on one leg never interleave
- send() never blocks: a full or closed leg drops the frame and reports it,
  which keeps one slow client from stalling broadcasts to the others
- A failed send marks the leg dead and notifies the owner
"""

import asyncio
import logging
from typing import Awaitable, Callable

from fastapi import WebSocket

from mathmcp.protocol.frames import ServerFrame

logger = logging.getLogger(__name__)

# Seconds to let queued frames flush before the writer is cancelled
_FLUSH_TIMEOUT = 1.0


class Leg:
    """
    Outbound side of one persistent connection.

    The receive side is driven by the gateway's WebSocket handler; the leg
    only owns writes and close.
    """

    def __init__(
        self,
        leg_id: str,
        websocket: WebSocket,
        max_queue_size: int = 200,
        on_failure: Callable[[str], Awaitable[None]] | None = None,
    ):
        """
        Args:
            leg_id: Unique leg identifier (the `sessionId` on the wire)
            websocket: Accepted WebSocket connection
            max_queue_size: Max queued outbound frames before frames are dropped
            on_failure: Called with the leg id when a send fails
        """
        self.leg_id = leg_id
        self._websocket = websocket
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=max_queue_size)
        self._on_failure = on_failure
        self._writer_task: asyncio.Task | None = None
        self._closed = False
        self._failed = False

    @property
    def closed(self) -> bool:
        return self._closed or self._failed

    @property
    def qsize(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the writer task."""
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(
                self._writer_loop(),
                name=f"leg_writer_{self.leg_id}"
            )

    def send(self, frame: ServerFrame | str) -> bool:
        """
        Queue a frame for delivery.

        Returns:
            True if queued, False if the leg is closed or its queue is full
        """
        if self.closed:
            return False

        message = frame if isinstance(frame, str) else frame.to_json()
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for leg {self.leg_id}, frame dropped")
            return False
        return True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """
        Flush pending frames, stop the writer, close the WebSocket.

        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True

        writer, self._writer_task = self._writer_task, None
        # A failed send closes the leg from inside the writer itself
        if writer and writer is not asyncio.current_task():
            try:
                self._queue.put_nowait(None)
                await asyncio.wait_for(asyncio.shield(writer), _FLUSH_TIMEOUT)
            except (asyncio.QueueFull, asyncio.TimeoutError):
                pass
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

        try:
            await self._websocket.close(code=code, reason=reason)
        except Exception as e:
            # Already closed by the peer
            logger.debug(f"Close on leg {self.leg_id} ignored: {e}")

    async def _writer_loop(self) -> None:
        """Single writer loop that drains the queue."""
        while True:
            try:
                message = await self._queue.get()

                # None is the shutdown signal
                if message is None:
                    break

                try:
                    await self._websocket.send_text(message)
                except Exception as e:
                    logger.warning(f"Send failed for leg {self.leg_id}: {e}")
                    self._failed = True
                    if self._on_failure:
                        await self._on_failure(self.leg_id)
                    break
                finally:
                    self._queue.task_done()

            except asyncio.CancelledError:
                break
