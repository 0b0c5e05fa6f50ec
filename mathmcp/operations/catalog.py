"""
Tool Catalog

Discovery descriptions for every math operation. The `discover` method
returns this catalog in the shape:

    {"tools": [{"name", "description",
                "parameters": {"type": "object",
                               "properties": {<param>: {"type": "number",
                                                        "description"}},
                               "required": [...]}}]}
"""

from typing import Any

from pydantic import BaseModel, Field


class ParameterSpec(BaseModel):
    """A single numeric operation parameter."""
    name: str
    description: str
    type: str = "number"
    required: bool = True


class ToolDefinition(BaseModel):
    """Discovery entry for one operation."""
    name: str = Field(..., description="Method name used in requests")
    description: str
    parameters: list[ParameterSpec] = Field(default_factory=list)

    def to_schema(self) -> dict[str, Any]:
        """Render as a JSON-schema style tool description."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": {
                    p.name: {"type": p.type, "description": p.description}
                    for p in self.parameters
                },
                "required": [p.name for p in self.parameters if p.required],
            },
        }


def _binary(name: str, description: str, a: str = "First number", b: str = "Second number") -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        parameters=[
            ParameterSpec(name="a", description=a),
            ParameterSpec(name="b", description=b),
        ],
    )


def _angle(name: str, description: str) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        parameters=[ParameterSpec(name="angle", description="Angle in radians")],
    )


TOOL_DEFINITIONS: list[ToolDefinition] = [
    _binary("add", "Add two numbers"),
    _binary("subtract", "Subtract second number from first number"),
    _binary("multiply", "Multiply two numbers"),
    _binary("divide", "Divide first number by second number", a="Numerator", b="Denominator"),
    ToolDefinition(
        name="power",
        description="Raise a number to a power",
        parameters=[
            ParameterSpec(name="base", description="Base number"),
            ParameterSpec(name="exponent", description="Exponent"),
        ],
    ),
    ToolDefinition(
        name="sqrt",
        description="Calculate the square root of a number",
        parameters=[
            ParameterSpec(name="value", description="The number to calculate the square root of"),
        ],
    ),
    _angle("sin", "Calculate the sine of an angle (in radians)"),
    _angle("cos", "Calculate the cosine of an angle (in radians)"),
    _angle("tan", "Calculate the tangent of an angle (in radians)"),
    ToolDefinition(
        name="log",
        description="Calculate the logarithm of a number with a specified base",
        parameters=[
            ParameterSpec(name="value", description="The number to calculate the logarithm of"),
            ParameterSpec(
                name="base",
                description="The base of the logarithm (default: natural logarithm)",
                required=False,
            ),
        ],
    ),
]
