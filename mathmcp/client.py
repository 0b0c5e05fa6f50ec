"""
Math Agent Client

Operator-side client for the gateway. Speaks both transports:

- HTTP: create_agent, call, discover, status
- Leg:  connect, send_request, ping (over a WebSocket)

Usage:
    async with MathAgentClient("http://localhost:8000") as client:
        await client.create_agent("calculator")
        print(await client.call("add", {"a": 2, "b": 3}))

        await client.connect()
        print(await client.send_request("sqrt", {"value": 16}))

Frames on a leg carry no correlation id, so requests on one leg are sent
one at a time and each waits for the next non-pong frame.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from typing import Any

import httpx
import websockets

logger = logging.getLogger(__name__)


class MathAgentError(Exception):
    """A request was rejected by the gateway or an operation failed."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class MathAgentClient:
    """
    Client for one agent on a Math MCP gateway.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http_client: httpx.AsyncClient | None = None,
        ping_interval: float | None = 30.0,
        request_timeout: float = 10.0,
    ):
        """
        Args:
            base_url: Gateway base URL (http or https)
            http_client: Client to reuse; one is created (and owned) otherwise
            ping_interval: Seconds between keep-alive pings on the leg,
                None disables them
            request_timeout: Seconds to wait for a reply on the leg
        """
        self.base_url = base_url.rstrip("/")
        self.agent_id: str | None = None
        self.session_id: str | None = None

        self._http = http_client or httpx.AsyncClient(base_url=self.base_url)
        self._owns_http = http_client is None
        self._ping_interval = ping_interval
        self._timeout = request_timeout

        self._ws: Any = None
        self._reader_task: asyncio.Task | None = None
        self._ping_task: asyncio.Task | None = None
        self._responses: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._pong_waiters: deque[asyncio.Future] = deque()
        self._request_lock = asyncio.Lock()

    async def __aenter__(self) -> "MathAgentClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._http.post(f"{self.base_url}{path}", json=body)
        return self._decode(response)

    def _decode(self, response: httpx.Response) -> dict[str, Any]:
        data = response.json()
        if response.status_code >= 400:
            raise MathAgentError(
                data.get("error", response.reason_phrase),
                status_code=response.status_code,
            )
        return data

    async def create_agent(self, name: str | None = None) -> str:
        """Create an agent and remember its id."""
        body = {"name": name} if name else {}
        data = await self._post("/agent", body)
        self.agent_id = data["agentId"]
        logger.info(f"Agent created: {self.agent_id}")
        return self.agent_id

    async def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Run one operation over HTTP.

        Raises:
            MathAgentError: On an HTTP error or an operation failure
        """
        data = await self._post("/mcp", {
            "agentId": self._require_agent(),
            "request": {"method": method, "params": params or {}},
        })
        result = data["result"]
        if isinstance(result, dict) and "error" in result:
            raise MathAgentError(result["error"], code=result.get("code"))
        return result

    async def discover(self) -> list[dict[str, Any]]:
        """Tool catalog of the gateway."""
        result = await self.call("discover")
        return result["tools"]

    async def status(self) -> dict[str, Any]:
        response = await self._http.get(f"{self.base_url}/status")
        return self._decode(response)

    def _require_agent(self) -> str:
        if self.agent_id is None:
            raise MathAgentError("No agent: call create_agent() first")
        return self.agent_id

    # =========================================================================
    # Leg
    # =========================================================================

    def websocket_url(self, agent_id: str | None = None) -> str:
        agent_id = agent_id or self._require_agent()
        if self.base_url.startswith("https://"):
            root = "wss://" + self.base_url[len("https://"):]
        elif self.base_url.startswith("http://"):
            root = "ws://" + self.base_url[len("http://"):]
        else:
            root = self.base_url
        return f"{root}/agent/{agent_id}/websocket"

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> dict[str, Any]:
        """
        Open a leg for the current agent.

        Returns:
            The `connected` frame
        """
        if self._ws is not None:
            raise MathAgentError("Leg already open")

        self._ws = await websockets.connect(self.websocket_url())
        frame = json.loads(await asyncio.wait_for(self._ws.recv(), self._timeout))
        if frame.get("type") != "connected":
            await self._ws.close()
            self._ws = None
            raise MathAgentError(f"Unexpected first frame: {frame.get('type')}")

        self.session_id = frame["sessionId"]
        self._reader_task = asyncio.create_task(self._reader_loop())
        if self._ping_interval:
            self._ping_task = asyncio.create_task(self._ping_loop())

        logger.info(f"Leg {self.session_id} open for agent {self.agent_id}")
        return frame

    async def send_request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Run one operation over the leg.

        Raises:
            MathAgentError: If the gateway answered with an error frame
        """
        frame = await self._exchange({
            "type": "mcp_request",
            "request": {"method": method, "params": params or {}},
        })
        if frame["type"] == "error":
            raise MathAgentError(frame["error"])
        return frame["result"]

    async def send_raw(self, text: str) -> dict[str, Any]:
        """Send an arbitrary text frame and return the reply frame."""
        async with self._request_lock:
            self._require_leg()
            await self._ws.send(text)
            return await asyncio.wait_for(self._responses.get(), self._timeout)

    async def _exchange(self, message: dict[str, Any]) -> dict[str, Any]:
        return await self.send_raw(json.dumps(message))

    async def ping(self) -> dict[str, Any]:
        """Send a ping and wait for its pong."""
        self._require_leg()
        waiter = asyncio.get_running_loop().create_future()
        self._pong_waiters.append(waiter)
        await self._ws.send(json.dumps({"type": "ping"}))
        return await asyncio.wait_for(waiter, self._timeout)

    def _require_leg(self) -> None:
        if self._ws is None:
            raise MathAgentError("No leg: call connect() first")

    async def _reader_loop(self) -> None:
        """Route pongs to ping waiters, everything else to the response queue."""
        try:
            async for raw in self._ws:
                frame = json.loads(raw)
                if frame.get("type") == "pong":
                    while self._pong_waiters:
                        waiter = self._pong_waiters.popleft()
                        if not waiter.done():
                            waiter.set_result(frame)
                            break
                else:
                    await self._responses.put(frame)
        except websockets.ConnectionClosed as e:
            logger.info(f"Leg {self.session_id} closed by gateway: {e}")

    async def _ping_loop(self) -> None:
        while True:
            await asyncio.sleep(self._ping_interval)
            try:
                await self.ping()
            except (asyncio.TimeoutError, websockets.ConnectionClosed) as e:
                logger.warning(f"Keep-alive failed on leg {self.session_id}: {e}")
                break

    async def disconnect(self) -> None:
        """Close the leg, if open."""
        for task in (self._ping_task, self._reader_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._ping_task = None
        self._reader_task = None

        if self._ws is not None:
            await self._ws.close()
            self._ws = None
            logger.info(f"Leg {self.session_id} closed")
        self.session_id = None

    async def close(self) -> None:
        """Close the leg and the owned HTTP client."""
        await self.disconnect()
        if self._owns_http:
            await self._http.aclose()
