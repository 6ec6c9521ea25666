"""Tool protocol that the imgtrust CLI runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from imgtrust_core.context import ExecutionContext


class ResultStatus(Enum):
    """Outcome of a tool run."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ToolResult:
    """Returned by every tool run.

    Attributes:
        status: Overall outcome.
        summary: Human-readable one-line summary.
        data: Structured output (must be JSON-serializable). The runner
              prints ``data["output"]`` when present.
    """

    status: ResultStatus
    summary: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolParam:
    """One string-valued command-line input of a tool; the runner turns it into an argparse argument.

    Attributes:
        name: Key in the ``args`` dict; also the ``--name`` flag for non-positionals.
        description: Help text.
        required: Fail argument parsing when absent.
        default: Value used when the argument is omitted.
        positional: Take the value from a bare argument (``imgtrust v1.2.3``).
    """

    name: str
    description: str
    required: bool = False
    default: Any = None
    positional: bool = False


@runtime_checkable
class ToolPlugin(Protocol):
    """What the imgtrust runner needs from a tool.

    Checked structurally, so tools do not inherit from anything:

        class DigestTool:
            name = "digest"
            description = "Print an image digest"
            version = "0.1.0"

            def get_params(self) -> list[ToolParam]:
                return [ToolParam(name="tag", description="Image tag", default="latest", positional=True)]

            def run(self, args: dict[str, Any], ctx: ExecutionContext) -> ToolResult:
                ctx.progress(0.5, f"Resolving {args['tag']}")
                return ToolResult(status=ResultStatus.SUCCESS, summary="sha256:...")
    """

    name: str
    description: str
    version: str

    def get_params(self) -> list[ToolParam]:
        ...

    def run(self, args: dict[str, Any], ctx: ExecutionContext) -> ToolResult:
        """Do the work for one invocation.

        ``args`` holds the parsed values keyed by ToolParam.name. Raising is
        allowed: the runner reports the exception as a single ``Error:`` line.
        """
        ...
