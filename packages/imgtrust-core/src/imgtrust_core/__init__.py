"""imgtrust core: tool protocol and shared utilities."""

from imgtrust_core.context import ExecutionContext
from imgtrust_core.deps import PreconditionError
from imgtrust_core.plugin import ResultStatus, ToolParam, ToolPlugin, ToolResult

__all__ = [
    "ExecutionContext",
    "PreconditionError",
    "ResultStatus",
    "ToolParam",
    "ToolPlugin",
    "ToolResult",
]
