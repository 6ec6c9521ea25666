"""Run a plugin in-process with console progress output."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any

import yaml

from imgtrust_core.context import ExecutionContext
from imgtrust_core.plugin import ResultStatus, ToolParam, ToolPlugin

CONFIG_ENV_VAR = "IMGTRUST_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "imgtrust" / "config.yaml"

# Exit codes per status
_STATUS_EXIT_CODES: dict[ResultStatus, int] = {
    ResultStatus.SUCCESS: 0,
    ResultStatus.FAILURE: 1,
    ResultStatus.CANCELLED: 130,
}


def add_params_to_parser(
    parser: argparse.ArgumentParser, params: list[ToolParam]
) -> None:
    """Add ToolParam declarations to an argparse.ArgumentParser.

    Positional params become optional positionals (``nargs="?"``) so their
    default applies when omitted.
    """
    for param in params:
        kwargs: dict[str, Any] = {
            "help": param.description,
        }

        if param.positional:
            kwargs["nargs"] = "?" if not param.required else None
            kwargs["default"] = param.default
            parser.add_argument(param.name, **kwargs)
            continue

        kwargs["required"] = param.required
        if param.default is not None:
            kwargs["default"] = param.default
        parser.add_argument(f"--{param.name}", **kwargs)


def _console_progress(fraction: float, message: str) -> None:
    """Print progress to stderr."""
    pct = int(fraction * 100)
    print(f"  [{pct:3d}%] {message}", file=sys.stderr, flush=True)


def config_path() -> Path:
    """Config file location: $IMGTRUST_CONFIG, else ~/.config/imgtrust/config.yaml."""
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(path: Path | None = None) -> dict:
    """Load the YAML config, if present. Unreadable files yield an empty config."""
    path = path or config_path()
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        print(f"Warning: ignoring unreadable config {path}: {e}", file=sys.stderr)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        print(f"Warning: ignoring config {path}: expected a mapping", file=sys.stderr)
        return {}
    return data


def setup_logging(config: dict) -> None:
    """Send log records to stderr at the configured level (default WARNING)."""
    level_name = str(config.get("log_level", "WARNING")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def run_plugin(plugin: ToolPlugin, args: dict[str, Any]) -> int:
    """Run a plugin in-process and return an exit code.

    Args:
        plugin: The plugin to run.
        args: Dict of parsed arguments.

    Returns:
        0 on SUCCESS, 1 on FAILURE or error, 130 on CANCELLED.
    """
    config = load_config()
    setup_logging(config)

    ctx = ExecutionContext(
        config=config,
        on_progress=_console_progress,
        cancel_event=threading.Event(),
    )

    try:
        result = plugin.run(args, ctx)
    except KeyboardInterrupt:
        ctx.cancel_event.set()
        print("\nCancelled.", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # Print result: "output" from data if present, else the summary
    output = result.data.get("output") if result.data else None
    if output:
        print(output)
    else:
        print(result.summary)

    return _STATUS_EXIT_CODES.get(result.status, 1)
