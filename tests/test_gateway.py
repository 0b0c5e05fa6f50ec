"""Tests for the gateway: HTTP routes, CORS, and WebSocket legs."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from mathmcp.config import GatewaySettings, settings_from_env
from mathmcp.gateway.app import configure_logging, create_app
from mathmcp.session import AgentSessionRegistry
from mathmcp.storage import AgentRecord, AgentStore, StorageError

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def client(app: Any) -> Iterator[TestClient]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def agent_id(client: TestClient) -> str:
    response = client.post("/agent", json={"name": "calculator"})
    return response.json()["agentId"]


def _mcp(client: TestClient, agent_id: str, method: str, **params: Any) -> Any:
    return client.post("/mcp", json={
        "agentId": agent_id,
        "request": {"method": method, "params": params},
    })


class UnreachableStore(AgentStore):
    async def create(self, record: AgentRecord) -> AgentRecord:
        raise StorageError("database is locked")

    async def get(self, agent_id: str) -> AgentRecord | None:
        raise StorageError("database is locked")

    async def count(self) -> int:
        return 0


# ============================================================================
# POST /agent
# ============================================================================


class TestCreateAgent:
    def test_create(self, client: TestClient) -> None:
        response = client.post("/agent", json={"name": "calculator"})
        assert response.status_code == 200
        assert response.json()["agentId"].startswith("agent-")

    def test_create_without_body(self, client: TestClient) -> None:
        response = client.post("/agent")
        assert response.status_code == 200
        agent_id = response.json()["agentId"]

        info = client.get(f"/agent/{agent_id}").json()
        assert info["name"] == "anonymous"

    def test_unparsable_body_uses_default_name(self, client: TestClient) -> None:
        response = client.post(
            "/agent", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 200
        agent_id = response.json()["agentId"]
        assert client.get(f"/agent/{agent_id}").json()["name"] == "anonymous"

    def test_ids_are_unique(self, client: TestClient) -> None:
        ids = {client.post("/agent", json={}).json()["agentId"] for _ in range(20)}
        assert len(ids) == 20

    def test_storage_failure(self, settings: GatewaySettings) -> None:
        registry = AgentSessionRegistry(store=UnreachableStore())
        with TestClient(create_app(settings=settings, registry=registry)) as client:
            response = client.post("/agent", json={})
        assert response.status_code == 500
        assert response.json()["error"].startswith("Error creating agent")
        assert response.headers["access-control-allow-origin"] == "*"


# ============================================================================
# POST /mcp
# ============================================================================


class TestMcpRequest:
    def test_add(self, client: TestClient, agent_id: str) -> None:
        response = _mcp(client, agent_id, "add", a=5, b=3)
        assert response.status_code == 200
        body = response.json()
        assert body["result"]["result"] == 8
        assert body["result"]["operation"] == "add"
        assert body["timestamp"].endswith("Z")

    @pytest.mark.parametrize("method,params,expected", [
        ("subtract", {"a": 10, "b": 4}, 6),
        ("multiply", {"a": 6, "b": 7}, 42),
        ("divide", {"a": 15, "b": 3}, 5),
        ("power", {"base": 2, "exponent": 10}, 1024),
        ("sqrt", {"value": 16}, 4),
    ])
    def test_operations(
        self, client: TestClient, agent_id: str, method: str, params: dict, expected: float
    ) -> None:
        assert _mcp(client, agent_id, method, **params).json()["result"]["result"] == expected

    def test_divide_by_zero_is_a_result(self, client: TestClient, agent_id: str) -> None:
        response = _mcp(client, agent_id, "divide", a=1, b=0)
        assert response.status_code == 200
        result = response.json()["result"]
        assert result["error"] == "Cannot divide by zero"
        assert result["code"] == "division_by_zero"
        assert result["method"] == "divide"

    def test_power_payload(self, client: TestClient, agent_id: str) -> None:
        result = _mcp(client, agent_id, "power", base=2, exponent=10).json()["result"]
        assert result == {"result": 1024, "operation": "power", "base": 2, "exponent": 10}

    def test_oversized_integer_is_a_result(self, client: TestClient, agent_id: str) -> None:
        body = (
            '{"agentId": "%s", "request": {"method": "add", "params": {"a": 1%s, "b": 1}}}'
            % (agent_id, "0" * 400)
        )
        response = client.post(
            "/mcp", content=body.encode(), headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 200
        result = response.json()["result"]
        assert result["code"] == "invalid_argument"
        assert result["method"] == "add"

    def test_log_base_one(self, client: TestClient, agent_id: str) -> None:
        result = _mcp(client, agent_id, "log", value=10, base=1).json()["result"]
        assert result["error"] == "Base must be positive and not equal to 1"

    def test_natural_log(self, client: TestClient, agent_id: str) -> None:
        result = _mcp(client, agent_id, "log", value=1).json()["result"]
        assert result["result"] == 0
        assert result["operation"] == "ln"

    def test_unknown_method(self, client: TestClient, agent_id: str) -> None:
        result = _mcp(client, agent_id, "modulo", a=1, b=2).json()["result"]
        assert result["error"] == "Unknown method: modulo"

    def test_discover(self, client: TestClient, agent_id: str) -> None:
        tools = _mcp(client, agent_id, "discover").json()["result"]["tools"]
        assert {t["name"] for t in tools} == {
            "add", "subtract", "multiply", "divide", "power",
            "sqrt", "sin", "cos", "tan", "log",
        }

    def test_unknown_agent(self, client: TestClient) -> None:
        response = _mcp(client, "agent-0-nobodyhome", "add", a=1, b=2)
        assert response.status_code == 404
        assert response.json() == {"error": "Agent not found"}

    @pytest.mark.parametrize("bad_id", [None, "", "bogus", 12345, "agent-"])
    def test_invalid_agent_id(self, client: TestClient, bad_id: Any) -> None:
        response = client.post("/mcp", json={
            "agentId": bad_id,
            "request": {"method": "add", "params": {"a": 1, "b": 2}},
        })
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid agent ID"}

    def test_agent_id_checked_before_request(self, client: TestClient) -> None:
        response = client.post("/mcp", json={"agentId": "bogus"})
        assert response.json() == {"error": "Invalid agent ID"}

    @pytest.mark.parametrize("request_body", [None, {}, {"params": {}}, {"method": ""}, "add"])
    def test_invalid_request(self, client: TestClient, agent_id: str, request_body: Any) -> None:
        response = client.post("/mcp", json={"agentId": agent_id, "request": request_body})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid MCP request"}

    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post(
            "/mcp", content=b"{oops", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert "error" in response.json()

    def test_missing_params_default_to_empty(self, client: TestClient, agent_id: str) -> None:
        response = client.post("/mcp", json={
            "agentId": agent_id, "request": {"method": "echo"},
        })
        assert response.json()["result"] == {"method": "echo", "params": {}}


# ============================================================================
# Status, agent info, routing, CORS
# ============================================================================


class TestStatusAndRouting:
    def test_status(self, client: TestClient, agent_id: str) -> None:
        body = client.get("/status").json()
        assert body["status"] == "ok"
        assert body["agentCount"] == 0
        assert "timestamp" in body

    def test_status_live_count(self, registry: AgentSessionRegistry) -> None:
        app = create_app(settings=GatewaySettings(status_live_count=True), registry=registry)
        with TestClient(app) as client:
            client.post("/agent", json={})
            client.post("/agent", json={})
            assert client.get("/status").json()["agentCount"] == 2

    def test_agent_info(self, client: TestClient, agent_id: str) -> None:
        body = client.get(f"/agent/{agent_id}").json()
        assert body["agentId"] == agent_id
        assert body["name"] == "calculator"
        assert body["connections"] == 0
        assert body["createdAt"] is not None

    def test_agent_info_not_found(self, client: TestClient) -> None:
        response = client.get("/agent/agent-0-missing")
        assert response.status_code == 404

    def test_agent_info_invalid_id(self, client: TestClient) -> None:
        response = client.get("/agent/bogus")
        assert response.status_code == 400

    def test_websocket_route_without_upgrade(self, client: TestClient, agent_id: str) -> None:
        response = client.get(f"/agent/{agent_id}/websocket")
        assert response.status_code == 400
        assert response.json() == {"error": "Expected WebSocket connection"}

    def test_unknown_path(self, client: TestClient) -> None:
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}
        assert response.headers["access-control-allow-origin"] == "*"

    def test_preflight(self, client: TestClient) -> None:
        response = client.options("/mcp")
        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]
        assert "Content-Type" in response.headers["access-control-allow-headers"]
        assert response.headers["access-control-max-age"] == "86400"

    def test_preflight_on_unknown_path(self, client: TestClient) -> None:
        assert client.options("/anything/at/all").status_code == 204

    def test_cors_on_success(self, client: TestClient) -> None:
        response = client.get("/status")
        assert response.headers["access-control-allow-origin"] == "*"

    def test_unhandled_error_becomes_500(
        self, client: TestClient, registry: AgentSessionRegistry, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def explode(name: str | None = None) -> Any:
            raise RuntimeError("boom")

        monkeypatch.setattr(registry, "create_agent", explode)
        response = client.post("/agent", json={})
        assert response.status_code == 500
        assert response.json() == {"error": "boom"}
        assert response.headers["access-control-allow-origin"] == "*"


# ============================================================================
# WebSocket legs
# ============================================================================


class TestWebSocketLegs:
    def test_connected_frame(self, client: TestClient, agent_id: str) -> None:
        with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
            frame = ws.receive_json()
            assert frame["type"] == "connected"
            assert frame["agentId"] == agent_id
            assert frame["sessionId"]

    def test_ping_pong(self, client: TestClient, agent_id: str) -> None:
        with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
            ws.receive_json()
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_mcp_request(self, client: TestClient, agent_id: str) -> None:
        with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
            ws.receive_json()
            ws.send_json({
                "type": "mcp_request",
                "request": {"method": "multiply", "params": {"a": 6, "b": 7}},
            })
            frame = ws.receive_json()
            assert frame["type"] == "mcp_response"
            assert frame["result"]["result"] == 42

    def test_power_payload_on_leg(self, client: TestClient, agent_id: str) -> None:
        with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
            ws.receive_json()
            ws.send_json({
                "type": "mcp_request",
                "request": {"method": "power", "params": {"base": 2, "exponent": 10}},
            })
            frame = ws.receive_json()
            assert frame["type"] == "mcp_response"
            assert frame["result"] == {
                "result": 1024, "operation": "power", "base": 2, "exponent": 10,
            }

    def test_operation_failure_on_leg(self, client: TestClient, agent_id: str) -> None:
        with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
            ws.receive_json()
            ws.send_json({
                "type": "mcp_request",
                "request": {"method": "divide", "params": {"a": 1, "b": 0}},
            })
            frame = ws.receive_json()
            assert frame == {
                "type": "error",
                "error": "Cannot divide by zero",
                "timestamp": frame["timestamp"],
            }

    def test_bad_frame_then_ping(self, client: TestClient, agent_id: str) -> None:
        with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
            ws.receive_json()
            ws.send_text("{{{ definitely not json")
            error = ws.receive_json()
            assert error["type"] == "error"
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_unsupported_frame_type(self, client: TestClient, agent_id: str) -> None:
        with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe"})
            assert ws.receive_json()["error"] == "Unsupported frame type: subscribe"

    def test_two_legs_on_one_agent(self, client: TestClient, agent_id: str) -> None:
        url = f"/agent/{agent_id}/websocket"
        with client.websocket_connect(url) as first, client.websocket_connect(url) as second:
            first_id = first.receive_json()["sessionId"]
            second_id = second.receive_json()["sessionId"]
            assert first_id != second_id

            assert client.get(f"/agent/{agent_id}").json()["connections"] == 2

            second.send_json({"type": "ping"})
            first.send_json({"type": "ping"})
            assert first.receive_json()["type"] == "pong"
            assert second.receive_json()["type"] == "pong"

    def test_http_and_leg_share_the_agent(self, client: TestClient, agent_id: str) -> None:
        with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
            ws.receive_json()
            assert _mcp(client, agent_id, "add", a=1, b=1).json()["result"]["result"] == 2
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_invalid_agent_id_is_rejected(self, client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/agent/bogus/websocket"):
                pass
        assert exc.value.code == 1008

    def test_unknown_agent_is_rejected(self, client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/agent/agent-0-missing/websocket"):
                pass
        assert exc.value.code == 1008

    def test_idle_timeout(self, registry: AgentSessionRegistry) -> None:
        app = create_app(settings=GatewaySettings(leg_idle_timeout_seconds=0.2), registry=registry)
        with TestClient(app) as client:
            agent_id = client.post("/agent", json={}).json()["agentId"]
            with client.websocket_connect(f"/agent/{agent_id}/websocket") as ws:
                ws.receive_json()
                with pytest.raises(WebSocketDisconnect) as exc:
                    ws.receive_json()
                assert exc.value.code == 1001


# ============================================================================
# Logging configuration
# ============================================================================


class TestLoggingConfiguration:
    def test_level_read_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MATHMCP_LOG_LEVEL", "debug")
        assert settings_from_env(load_env_file=False).log_level == "DEBUG"

    def test_configure_logging_applies_settings_level(self) -> None:
        package_logger = logging.getLogger("mathmcp")
        previous = package_logger.level
        try:
            configure_logging(GatewaySettings(log_level="WARNING"))
            assert package_logger.level == logging.WARNING
            assert logging.getLogger("mathmcp.gateway.app").getEffectiveLevel() == logging.WARNING
        finally:
            package_logger.setLevel(previous)
