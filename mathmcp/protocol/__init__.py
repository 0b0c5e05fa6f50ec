# Protocol
# Leg frames, HTTP bodies and the error taxonomy shared by both transports

from mathmcp.protocol.errors import (
    ErrorCode,
    MathMcpError,
    OperationError,
    InvalidArgumentError,
    DomainError,
    DivisionByZeroError,
    UnknownMethodError,
    InvalidAgentIdError,
    AgentNotFoundError,
    MalformedRequestError,
    TransportFailureError,
)
from mathmcp.protocol.frames import (
    FrameType,
    OperationRequest,
    ClientFrame,
    ServerFrame,
    parse_client_frame,
    create_connected,
    create_mcp_response,
    create_pong,
    create_error,
    utc_timestamp,
    AgentCreatedResponse,
    McpHttpResponse,
    StatusResponse,
    AgentInfoResponse,
)

__all__ = [
    # Errors
    "ErrorCode",
    "MathMcpError",
    "OperationError",
    "InvalidArgumentError",
    "DomainError",
    "DivisionByZeroError",
    "UnknownMethodError",
    "InvalidAgentIdError",
    "AgentNotFoundError",
    "MalformedRequestError",
    "TransportFailureError",
    # Frames
    "FrameType",
    "OperationRequest",
    "ClientFrame",
    "ServerFrame",
    "parse_client_frame",
    "create_connected",
    "create_mcp_response",
    "create_pong",
    "create_error",
    "utc_timestamp",
    # HTTP bodies
    "AgentCreatedResponse",
    "McpHttpResponse",
    "StatusResponse",
    "AgentInfoResponse",
]
