"""Per-run state handed from the CLI runner to a tool."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

ProgressCallback = Callable[[float, str], None]


@dataclass
class ExecutionContext:
    """What a tool sees of its environment while it runs.

    Attributes:
        config: Mapping loaded from the YAML config file; empty when there is none.
        on_progress: Receives (fraction, message) updates, fraction in 0.0-1.0.
        cancel_event: Set by the runner on Ctrl-C. Tools stop at the next
                      unit of work once it is set.
    """

    config: dict[str, Any] = field(default_factory=dict)
    on_progress: ProgressCallback = field(default=lambda f, m: None)
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def progress(self, fraction: float, message: str) -> None:
        """Forward an update to on_progress, clamping fraction into 0.0-1.0."""
        self.on_progress(min(max(fraction, 0.0), 1.0), message)

    def progress_between(self, start: float, end: float, done: int, total: int, message: str) -> None:
        """Report step ``done`` of ``total`` inside the ``start``-``end`` band."""
        share = done / total if total else 1.0
        self.progress(start + (end - start) * share, message)

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()
