"""Thin wrapper around subprocess for the external CLIs (cosign, crane)."""

from __future__ import annotations

import logging
import subprocess

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "timeout"


def run_cmd(args: list[str], timeout: int = 30) -> tuple[bool, str, str]:
    """Run a command and return (success, stdout, stderr).

    A timeout or a missing executable is reported as a failed run; stderr
    is ``"timeout"`` for the former. Undecodable output bytes are replaced.
    """
    ok, stdout, stderr = run_cmd_bytes(args, timeout=timeout)
    return ok, stdout.decode("utf-8", errors="replace"), stderr


def run_cmd_bytes(args: list[str], timeout: int = 30) -> tuple[bool, bytes, str]:
    """Like ``run_cmd`` but hands stdout back untouched, for blob payloads."""
    logger.debug("Running: %s (timeout %ss)", " ".join(args), timeout)
    try:
        result = subprocess.run(args, capture_output=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.debug("Command timed out after %ss: %s", timeout, args[0])
        return False, b"", TIMEOUT_MESSAGE
    except OSError as e:
        return False, b"", str(e)
    stderr = (result.stderr or b"").decode("utf-8", errors="replace")
    return result.returncode == 0, result.stdout or b"", stderr
