# Math MCP Gateway
# Session-oriented math operations for agents over HTTP and WebSocket legs

__version__ = "0.1.0"

# Re-export commonly used components for convenience
from mathmcp.operations import (
    OperationTable,
    create_default_table,
)

from mathmcp.session import (
    AgentSession,
    AgentSessionRegistry,
    DispatchOutcome,
)

from mathmcp.protocol import (
    MathMcpError,
    OperationRequest,
)

__all__ = [
    "__version__",
    # Operations
    "OperationTable",
    "create_default_table",
    # Sessions
    "AgentSession",
    "AgentSessionRegistry",
    "DispatchOutcome",
    # Protocol
    "MathMcpError",
    "OperationRequest",
]
