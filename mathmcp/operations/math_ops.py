"""
Math Operations

Pure numeric handlers. Each takes the request params mapping and returns a
result dict `{"result", "operation", <echoed inputs>}` or raises an
OperationError subclass.

Inputs are coerced to float. Booleans, missing values, NaN and infinities
are rejected as non-numeric. A computation whose result is not a finite
float is reported as a domain error, since it cannot be represented in a
JSON reply.
"""

import math
from typing import Any

from mathmcp.protocol.errors import (
    DivisionByZeroError,
    DomainError,
    InvalidArgumentError,
)


def to_number(value: Any, name: str) -> float:
    """Coerce a parameter to a finite float."""
    if isinstance(value, bool) or value is None:
        raise InvalidArgumentError(f"Parameter '{name}' must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"Parameter '{name}' must be a number")
    except OverflowError:
        # integers too large for a float
        raise InvalidArgumentError(f"Parameter '{name}' must be a finite number")
    if not math.isfinite(number):
        raise InvalidArgumentError(f"Parameter '{name}' must be a finite number")
    return number


def _finite(result: float, operation: str) -> float:
    if not math.isfinite(result):
        raise DomainError(f"Result of {operation} is not a finite number")
    return result


def _operands(params: dict[str, Any]) -> tuple[float, float]:
    return to_number(params.get("a"), "a"), to_number(params.get("b"), "b")


def add(params: dict[str, Any]) -> dict[str, Any]:
    a, b = _operands(params)
    return {"result": _finite(a + b, "add"), "operation": "add", "a": a, "b": b}


def subtract(params: dict[str, Any]) -> dict[str, Any]:
    a, b = _operands(params)
    return {"result": _finite(a - b, "subtract"), "operation": "subtract", "a": a, "b": b}


def multiply(params: dict[str, Any]) -> dict[str, Any]:
    a, b = _operands(params)
    return {"result": _finite(a * b, "multiply"), "operation": "multiply", "a": a, "b": b}


def divide(params: dict[str, Any]) -> dict[str, Any]:
    a, b = _operands(params)
    if b == 0:
        raise DivisionByZeroError("Cannot divide by zero")
    return {"result": _finite(a / b, "divide"), "operation": "divide", "a": a, "b": b}


def power(params: dict[str, Any]) -> dict[str, Any]:
    base = to_number(params.get("base"), "base")
    exponent = to_number(params.get("exponent"), "exponent")
    try:
        result = math.pow(base, exponent)
    except (ValueError, OverflowError) as e:
        # negative base with fractional exponent, 0 ** negative, overflow
        raise DomainError(f"Cannot raise {base} to the power {exponent}: {e}")
    return {
        "result": _finite(result, "power"),
        "operation": "power",
        "base": base,
        "exponent": exponent,
    }


def sqrt(params: dict[str, Any]) -> dict[str, Any]:
    value = to_number(params.get("value"), "value")
    if value < 0:
        raise DomainError("Cannot calculate square root of a negative number")
    return {"result": math.sqrt(value), "operation": "sqrt", "value": value}


def _trig(name: str, fn, params: dict[str, Any]) -> dict[str, Any]:
    angle = to_number(params.get("angle"), "angle")
    return {"result": _finite(fn(angle), name), "operation": name, "angle": angle}


def sin(params: dict[str, Any]) -> dict[str, Any]:
    return _trig("sin", math.sin, params)


def cos(params: dict[str, Any]) -> dict[str, Any]:
    return _trig("cos", math.cos, params)


def tan(params: dict[str, Any]) -> dict[str, Any]:
    return _trig("tan", math.tan, params)


def log(params: dict[str, Any]) -> dict[str, Any]:
    """
    Natural logarithm, or logarithm in an explicit base.

    `operation` is "ln" when no base is given and "log_base" otherwise.
    The `base` key is only echoed when a base was supplied.
    """
    value = to_number(params.get("value"), "value")
    if value <= 0:
        raise DomainError("Value must be positive for logarithm")

    raw_base = params.get("base")
    if raw_base is None:
        return {"result": math.log(value), "operation": "ln", "value": value}

    base = to_number(raw_base, "base")
    if base <= 0 or base == 1:
        raise DomainError("Base must be positive and not equal to 1")

    return {
        "result": math.log(value) / math.log(base),
        "operation": "log_base",
        "value": value,
        "base": base,
    }
