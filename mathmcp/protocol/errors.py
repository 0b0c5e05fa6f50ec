"""
Error Taxonomy

Every failure the gateway can report to a caller is a MathMcpError subclass.
Each kind carries a stable machine-readable code and the HTTP status the
gateway answers with when the error reaches the HTTP boundary.

Operation failures (invalid_argument, domain_error, division_by_zero,
unknown_method) never cross the gateway as HTTP errors: the agent session
returns them as typed failures inside the result body. The remaining kinds
describe addressing and transport problems and map to 4xx/5xx responses.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes surfaced in error bodies."""
    INVALID_ARGUMENT = "invalid_argument"
    DOMAIN_ERROR = "domain_error"
    DIVISION_BY_ZERO = "division_by_zero"
    UNKNOWN_METHOD = "unknown_method"
    INVALID_AGENT_ID = "invalid_agent_id"
    AGENT_NOT_FOUND = "agent_not_found"
    MALFORMED_REQUEST = "malformed_request"
    TRANSPORT_FAILURE = "transport_failure"


class MathMcpError(Exception):
    """Base exception for all gateway errors."""

    code: ErrorCode = ErrorCode.TRANSPORT_FAILURE
    status_code: int = 500

    def __init__(self, message: str, method: str | None = None):
        self.message = message
        self.method = method
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for result bodies and error frames."""
        body: dict[str, Any] = {
            "error": self.message,
            "code": self.code.value,
        }
        if self.method is not None:
            body["method"] = self.method
        return body


# === Operation errors (returned inside results) ===

class OperationError(MathMcpError):
    """Failure raised by the operation table."""
    status_code = 200


class InvalidArgumentError(OperationError):
    """A parameter could not be coerced to a number."""
    code = ErrorCode.INVALID_ARGUMENT


class DomainError(OperationError):
    """A numeric parameter is outside the operation's domain."""
    code = ErrorCode.DOMAIN_ERROR


class DivisionByZeroError(OperationError):
    code = ErrorCode.DIVISION_BY_ZERO


class UnknownMethodError(OperationError):
    """No operation is registered under the requested name."""
    code = ErrorCode.UNKNOWN_METHOD

    def __init__(self, method: str):
        super().__init__(f"Unknown method: {method}", method=method)


# === Addressing / transport errors (mapped to HTTP statuses) ===

class InvalidAgentIdError(MathMcpError):
    """The agent identifier is malformed."""
    code = ErrorCode.INVALID_AGENT_ID
    status_code = 400

    def __init__(self, message: str = "Invalid agent ID"):
        super().__init__(message)


class AgentNotFoundError(InvalidAgentIdError):
    """The agent identifier is well-formed but does not resolve."""
    code = ErrorCode.AGENT_NOT_FOUND
    status_code = 404

    def __init__(self, agent_id: str | None = None):
        super().__init__("Agent not found")
        self.agent_id = agent_id


class MalformedRequestError(MathMcpError):
    """A required top-level field is missing or has the wrong shape."""
    code = ErrorCode.MALFORMED_REQUEST
    status_code = 400


class TransportFailureError(MathMcpError):
    """Resolving or forwarding to an agent session failed."""
    code = ErrorCode.TRANSPORT_FAILURE
    status_code = 500
