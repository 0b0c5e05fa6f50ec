"""
Math MCP Gateway Application

FastAPI application exposing agent sessions over HTTP and WebSocket.
This is the main entry point for running the gateway:

    uvicorn mathmcp.gateway.app:app

Routes:
- POST /agent                     -> create an agent, returns {agentId}
- GET  /agent/{agentId}           -> agent identity and open leg count
- POST /mcp                       -> one-shot operation request
- GET  /status                    -> liveness probe
- WS   /agent/{agentId}/websocket -> persistent leg (see mathmcp.protocol.frames)
- OPTIONS *                       -> 204 preflight

Every response carries permissive CORS headers. The gateway owns no session
state: everything agent-scoped is delegated to the AgentSessionRegistry.

Storage is configured via environment variables, see mathmcp.storage.factory.
Gateway settings are documented in mathmcp.config.
Environment variables can be loaded from a .env file in the project root.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response, WebSocket
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mathmcp.config import GatewaySettings, settings_from_env
from mathmcp.gateway.handler import WebSocketHandler
from mathmcp.protocol import (
    AgentCreatedResponse,
    AgentInfoResponse,
    MalformedRequestError,
    MathMcpError,
    McpHttpResponse,
    OperationRequest,
    StatusResponse,
    TransportFailureError,
)
from mathmcp.session import AgentSessionRegistry, is_valid_agent_id
from mathmcp.storage import StorageBundle, create_storage_from_env

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Requested-With",
    "Access-Control-Max-Age": "86400",
}


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _read_json(request: Request) -> Any:
    """Parse the request body; an empty body is None."""
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        raise MalformedRequestError("Invalid JSON body")


def _registry(request: Request | WebSocket) -> AgentSessionRegistry:
    registry = request.app.state.registry
    if registry is None:
        raise TransportFailureError("Gateway not initialized")
    return registry


def create_app(
    settings: GatewaySettings | None = None,
    registry: AgentSessionRegistry | None = None,
    storage: StorageBundle | None = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Gateway settings (default: from environment)
        registry: Pre-built session registry. When omitted the registry is
            created at startup on top of `storage`.
        storage: Storage bundle (default: from environment at startup)
    """
    settings = settings or settings_from_env(load_env_file=False)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Initializes and tears down storage and the session registry.
        """
        owned_storage: StorageBundle | None = None

        # Startup
        logger.info("Starting Math MCP gateway...")

        if app.state.registry is None:
            owned_storage = storage or await create_storage_from_env()
            logger.info(f"Storage initialized: {type(owned_storage.agents).__name__}")
            app.state.registry = AgentSessionRegistry(
                store=owned_storage.agents,
                idle_ttl_seconds=settings.session_idle_ttl_seconds,
                cleanup_interval_seconds=settings.cleanup_interval_seconds,
                leg_queue_size=settings.leg_queue_size,
            )

        await app.state.registry.start()
        logger.info("Math MCP gateway started")

        yield

        # Shutdown
        logger.info("Shutting down Math MCP gateway...")
        await app.state.registry.stop()
        if owned_storage is not None:
            await owned_storage.close()
            app.state.registry = None
        logger.info("Math MCP gateway stopped")

    app = FastAPI(
        title="Math MCP Gateway",
        description="Session-oriented math operations over HTTP and WebSocket",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.settings = settings

    handler = WebSocketHandler(leg_idle_timeout_seconds=settings.leg_idle_timeout_seconds)

    # =========================================================================
    # Middleware & error translation
    # =========================================================================

    @app.middleware("http")
    async def cors_and_errors(request: Request, call_next):
        """Answer preflights, add CORS headers, turn crashes into 500s."""
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Error handling {request.method} {request.url.path}: {e}")
            response = _error_response(500, str(e) or "An unknown error occurred")

        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(MathMcpError)
    async def handle_gateway_error(request: Request, exc: MathMcpError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return _error_response(exc.status_code, message)

    # =========================================================================
    # HTTP routes
    # =========================================================================

    @app.post("/agent")
    async def create_agent(request: Request) -> JSONResponse:
        """Create an agent. Body: {name?: string}."""
        try:
            body = await _read_json(request)
        except MalformedRequestError:
            body = None

        name = body.get("name") if isinstance(body, dict) else None
        if not isinstance(name, str) or not name:
            name = settings.default_agent_name

        session = await _registry(request).create_agent(name)
        return JSONResponse(
            AgentCreatedResponse(agent_id=session.agent_id).model_dump(by_alias=True)
        )

    @app.get("/agent/{agent_id}")
    async def get_agent(agent_id: str, request: Request) -> JSONResponse:
        """Identity and open leg count of an agent."""
        session = await _registry(request).resolve(agent_id)
        info = AgentInfoResponse.model_validate(session.describe())
        return JSONResponse(info.model_dump(by_alias=True))

    @app.get("/agent/{agent_id}/websocket")
    async def websocket_over_http(agent_id: str) -> JSONResponse:
        """The leg endpoint reached without an upgrade."""
        if not is_valid_agent_id(agent_id):
            return _error_response(400, "Invalid agent ID")
        return _error_response(400, "Expected WebSocket connection")

    @app.post("/mcp")
    async def mcp_request(request: Request) -> JSONResponse:
        """
        One-shot operation request.

        Body: {agentId: string, request: {method: string, params?: object}}
        """
        body = await _read_json(request)
        if not isinstance(body, dict):
            raise MalformedRequestError("Request body must be a JSON object")

        agent_id = body.get("agentId")
        if not is_valid_agent_id(agent_id):
            return _error_response(400, "Invalid agent ID")

        try:
            operation = OperationRequest.model_validate(body.get("request"))
        except ValidationError:
            return _error_response(400, "Invalid MCP request")

        session = await _registry(request).resolve(agent_id)
        outcome = session.dispatch(operation)

        return JSONResponse(McpHttpResponse(result=outcome.to_payload()).model_dump())

    @app.get("/status")
    async def status(request: Request) -> JSONResponse:
        """Liveness probe."""
        agent_count = 0
        registry = request.app.state.registry
        if settings.status_live_count and registry is not None:
            agent_count = registry.session_count
        return JSONResponse(
            StatusResponse(agent_count=agent_count).model_dump(by_alias=True)
        )

    # =========================================================================
    # WebSocket route
    # =========================================================================

    @app.websocket("/agent/{agent_id}/websocket")
    async def agent_websocket(websocket: WebSocket, agent_id: str):
        """
        Persistent leg for an agent.

        The gateway only validates and resolves; the session handles every
        frame once the leg is established.
        """
        registry = websocket.app.state.registry
        if registry is None:
            await websocket.close(code=1011, reason="Gateway not initialized")
            return

        if not is_valid_agent_id(agent_id):
            await websocket.close(code=1008, reason="Invalid agent ID")
            return

        try:
            session = await registry.resolve(agent_id)
        except MathMcpError as e:
            logger.warning(f"WebSocket upgrade rejected for {agent_id}: {e.message}")
            await websocket.close(code=1008 if e.status_code < 500 else 1011, reason=e.message)
            return

        await handler.handle_connection(websocket, session)

    return app


def configure_logging(settings: GatewaySettings) -> None:
    """Apply the configured level to the root handler and the mathmcp loggers."""
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logging.getLogger("mathmcp").setLevel(settings.log_level)


# Load environment variables from .env file, then configure logging
gateway_settings = settings_from_env()
configure_logging(gateway_settings)

app = create_app(gateway_settings)
