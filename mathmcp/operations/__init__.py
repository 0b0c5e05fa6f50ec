# Operation Table
# Pure name -> computation mapping for the supported math operations

from mathmcp.operations.catalog import ParameterSpec, ToolDefinition, TOOL_DEFINITIONS
from mathmcp.operations.table import Operation, OperationTable, create_default_table

__all__ = [
    "ParameterSpec",
    "ToolDefinition",
    "TOOL_DEFINITIONS",
    "Operation",
    "OperationTable",
    "create_default_table",
]
