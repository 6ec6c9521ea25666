"""Precondition checks for the external binaries a tool shells out to."""

from __future__ import annotations

import shutil
from dataclasses import dataclass

# Where to point users when a tool is missing
INSTALL_HINTS: dict[str, str] = {
    "cosign": "https://docs.sigstore.dev/cosign/system_config/installation/",
    "crane": "https://github.com/google/go-containerregistry/tree/main/cmd/crane",
}


class PreconditionError(RuntimeError):
    """A required external tool is not installed."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        hints = [f"{tool}: {INSTALL_HINTS[tool]}" for tool in missing if tool in INSTALL_HINTS]
        message = f"Missing required tools: {', '.join(missing)}"
        if hints:
            message += f" (install: {'; '.join(hints)})"
        super().__init__(message)


@dataclass(frozen=True)
class DependencyCheck:
    """Where (if anywhere) a required binary was found on PATH."""

    name: str
    available: bool
    path: str | None


def check_dependencies(required: list[str]) -> list[DependencyCheck]:
    """Look up each binary on PATH, in the order given."""
    checks = []
    for tool in required:
        path = shutil.which(tool)
        checks.append(DependencyCheck(name=tool, available=path is not None, path=path))
    return checks


def assert_dependencies(required: list[str]) -> None:
    """Fail fast, before any network call, when a binary is missing.

    Raises:
        PreconditionError: Naming every missing binary, not just the first.
    """
    missing = [check.name for check in check_dependencies(required) if not check.available]
    if missing:
        raise PreconditionError(missing)
