"""
Operation Table

Static mapping from method name to handler. Dispatch is a single dict
lookup; anything not in the table is an UnknownMethodError.

Besides the math operations the table serves two protocol helpers:
- discover: returns the tool catalog
- echo: returns {"method": "echo", "params": params} unchanged
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from mathmcp.operations import math_ops
from mathmcp.operations.catalog import TOOL_DEFINITIONS, ToolDefinition
from mathmcp.protocol.errors import OperationError, UnknownMethodError

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class Operation:
    """A registered operation."""
    name: str
    handler: Handler
    definition: ToolDefinition | None = None


class OperationTable:
    """
    Name -> operation lookup table.

    Handlers are pure and synchronous; the table holds no per-agent state
    and can be shared across all agent sessions.
    """

    def __init__(self, operations: list[Operation] | None = None):
        self._operations: dict[str, Operation] = {}
        for operation in operations or []:
            self.register(operation)

    def register(self, operation: Operation) -> None:
        if operation.name in self._operations:
            raise ValueError(f"Operation already registered: {operation.name}")
        self._operations[operation.name] = operation

    def get(self, method: str) -> Operation | None:
        return self._operations.get(method)

    def __contains__(self, method: str) -> bool:
        return method in self._operations

    @property
    def names(self) -> list[str]:
        return list(self._operations)

    def discover(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Catalog of every operation that carries a tool definition."""
        return {
            "tools": [
                op.definition.to_schema()
                for op in self._operations.values()
                if op.definition is not None
            ]
        }

    def dispatch(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Execute an operation.

        Raises:
            UnknownMethodError: method is not registered
            OperationError: the handler rejected its input; the error is
                tagged with the method name
        """
        operation = self._operations.get(method)
        if operation is None:
            raise UnknownMethodError(method)

        try:
            return operation.handler(params or {})
        except OperationError as e:
            if e.method is None:
                e.method = method
            raise


def _echo(params: dict[str, Any]) -> dict[str, Any]:
    return {"method": "echo", "params": params}


_MATH_HANDLERS: dict[str, Handler] = {
    "add": math_ops.add,
    "subtract": math_ops.subtract,
    "multiply": math_ops.multiply,
    "divide": math_ops.divide,
    "power": math_ops.power,
    "sqrt": math_ops.sqrt,
    "sin": math_ops.sin,
    "cos": math_ops.cos,
    "tan": math_ops.tan,
    "log": math_ops.log,
}


def create_default_table() -> OperationTable:
    """Build the table with all math operations plus discover and echo."""
    table = OperationTable()
    for definition in TOOL_DEFINITIONS:
        table.register(Operation(
            name=definition.name,
            handler=_MATH_HANDLERS[definition.name],
            definition=definition,
        ))
    table.register(Operation(name="discover", handler=table.discover))
    table.register(Operation(name="echo", handler=_echo))
    logger.debug(f"Operation table built with {len(table.names)} operations")
    return table
