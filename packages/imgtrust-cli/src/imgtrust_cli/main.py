"""imgtrust CLI entry point.

Usage:
    imgtrust                Verify the default image tag ("latest")
    imgtrust <tag>          Verify a tag (or a sha256 digest)
    imgtrust --help         Show help

Registry, repository, identity pattern, issuer, transport, output format and
timeouts are read from $IMGTRUST_CONFIG or ~/.config/imgtrust/config.yaml.
"""

from __future__ import annotations

import argparse
import sys

from imgtrust_cli.runner import add_params_to_parser, run_plugin
from imgtrust_verify import create_plugin


def build_parser(plugin) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=plugin.name,
        description=plugin.description,
        epilog="Exit status: 0 verified, 1 verification failed or a required tool is missing.",
    )
    add_params_to_parser(parser, plugin.get_params())
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    plugin = create_plugin()
    parser = build_parser(plugin)
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    sys.exit(run_plugin(plugin, vars(args)))


if __name__ == "__main__":
    main()
