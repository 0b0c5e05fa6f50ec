"""
Leg Frame Model

Every message on a persistent connection ("leg") is a JSON text frame with a
`type` discriminator. The frame set is deliberately small:

Client -> server:
- mcp_request  -> wraps an operation request, answered with mcp_response
- ping         -> keep-alive, answered with pong

Server -> client:
- connected    -> sent once when the leg is accepted
- mcp_response -> operation result (or operation error body)
- pong         -> keep-alive reply
- error        -> malformed/unsupported frame; the leg stays open

HTTP bodies for the gateway routes are modelled here as well so that both
transports share one definition of an operation request.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mathmcp.protocol.errors import MalformedRequestError


class FrameType(str, Enum):
    """Leg frame types."""
    CONNECTED = "connected"
    MCP_REQUEST = "mcp_request"
    MCP_RESPONSE = "mcp_response"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


def utc_timestamp() -> str:
    """ISO 8601 UTC timestamp with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class OperationRequest(BaseModel):
    """
    A single operation invocation.

    Shared by the HTTP `/mcp` route and the `mcp_request` leg frame.
    """
    method: str = Field(
        ...,
        min_length=1,
        description="Operation name, e.g. 'add' or 'discover'"
    )
    params: dict[str, Any] = Field(
        default_factory=dict,
        description="Operation parameters keyed by name"
    )

    @field_validator("params", mode="before")
    @classmethod
    def _default_params(cls, value: Any) -> Any:
        return {} if value is None else value


# === Client frames ===

class ClientFrame(BaseModel):
    """
    A frame received from a client on a leg.

    Only `type` is mandatory at the envelope level; the per-type payload is
    checked by parse_client_frame().
    """
    model_config = ConfigDict(extra="allow")

    type: str
    request: OperationRequest | None = None
    timestamp: str | None = None


def parse_client_frame(raw: str | bytes) -> ClientFrame:
    """
    Parse and validate a raw client frame.

    Raises:
        MalformedRequestError: invalid JSON, missing fields, or an
            unsupported frame type
    """
    try:
        frame = ClientFrame.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedRequestError(_describe_validation_error(e)) from e

    if frame.type == FrameType.MCP_REQUEST.value:
        if frame.request is None:
            raise MalformedRequestError("mcp_request frame requires a 'request' object")
    elif frame.type != FrameType.PING.value:
        raise MalformedRequestError(f"Unsupported frame type: {frame.type}")

    return frame


def _describe_validation_error(error: ValidationError) -> str:
    """Condense a pydantic error into a one-line message."""
    first = error.errors()[0]
    if first.get("type") == "json_invalid":
        return "Invalid JSON frame"
    location = ".".join(str(part) for part in first.get("loc", ()))
    if location:
        return f"Invalid frame: {location}: {first.get('msg')}"
    return f"Invalid frame: {first.get('msg')}"


# === Server frames ===

class ServerFrame(BaseModel):
    """Base for frames sent by the server."""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: str = Field(default_factory=utc_timestamp)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ConnectedFrame(ServerFrame):
    type: Literal["connected"] = "connected"
    session_id: str = Field(..., alias="sessionId")
    agent_id: str | None = Field(..., alias="agentId")


class McpResponseFrame(ServerFrame):
    type: Literal["mcp_response"] = "mcp_response"
    result: Any


class PongFrame(ServerFrame):
    type: Literal["pong"] = "pong"


class ErrorFrame(ServerFrame):
    type: Literal["error"] = "error"
    error: str


def create_connected(session_id: str, agent_id: str | None) -> ConnectedFrame:
    """Announcement sent when a leg is accepted."""
    return ConnectedFrame(session_id=session_id, agent_id=agent_id)


def create_mcp_response(result: Any) -> McpResponseFrame:
    return McpResponseFrame(result=result)


def create_pong() -> PongFrame:
    return PongFrame()


def create_error(message: str) -> ErrorFrame:
    """Error frame for malformed or unsupported client frames."""
    return ErrorFrame(error=message)


# === HTTP bodies ===

class AgentCreatedResponse(BaseModel):
    """Body of POST /agent."""
    model_config = ConfigDict(populate_by_name=True)

    agent_id: str = Field(..., alias="agentId")


class McpHttpResponse(BaseModel):
    """Body of a successful POST /mcp."""
    result: Any
    timestamp: str = Field(default_factory=utc_timestamp)


class StatusResponse(BaseModel):
    """Body of GET /status."""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    timestamp: str = Field(default_factory=utc_timestamp)
    agent_count: int = Field(default=0, alias="agentCount")


class AgentInfoResponse(BaseModel):
    """Body of GET /agent/{agentId}."""
    model_config = ConfigDict(populate_by_name=True)

    agent_id: str = Field(..., alias="agentId")
    name: str
    connections: int = 0
    created_at: str | None = Field(default=None, alias="createdAt")
