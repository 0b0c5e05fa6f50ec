"""Shared fixtures for the gateway test suite."""

from __future__ import annotations

from typing import Any

import pytest

from mathmcp.config import GatewaySettings
from mathmcp.gateway.app import create_app
from mathmcp.operations import OperationTable, create_default_table
from mathmcp.session import AgentSessionRegistry
from mathmcp.storage import InMemoryAgentStore


class FakeWebSocket:
    """Stand-in for a Starlette WebSocket that records what the server sends."""

    def __init__(self, fail_on_send: bool = False) -> None:
        self.accepted = False
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_on_send = fail_on_send

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail_on_send:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)


@pytest.fixture
def operations() -> OperationTable:
    return create_default_table()


@pytest.fixture
def store() -> InMemoryAgentStore:
    return InMemoryAgentStore()


@pytest.fixture
def registry(store: InMemoryAgentStore, operations: OperationTable) -> AgentSessionRegistry:
    return AgentSessionRegistry(store=store, operations=operations)


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings()


@pytest.fixture
def app(settings: GatewaySettings, registry: AgentSessionRegistry) -> Any:
    return create_app(settings=settings, registry=registry)


@pytest.fixture
def make_websocket() -> type[FakeWebSocket]:
    return FakeWebSocket
