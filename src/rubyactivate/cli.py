"""`rubyactivate` command line entry point.

Examples:
    rubyactivate activate ~/src/my-app
    rubyactivate activate --manager chruby --verbose
    rubyactivate detect
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import SUPPORTED_MANAGERS, load_config
from .runtime import ActivationError, RubyRuntime


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rubyactivate",
        description="Activate the Ruby environment of a workspace and print it as JSON",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log activation steps to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    activate = subparsers.add_parser("activate", help="Activate Ruby and print the environment")
    activate.add_argument("workspace", nargs="?", default=".", help="Workspace root (default: current directory)")
    activate.add_argument(
        "--manager",
        choices=SUPPORTED_MANAGERS,
        help="Override the version manager configured in .rubyactivate.toml",
    )

    detect = subparsers.add_parser("detect", help="Print the version manager auto-detection picks")
    detect.add_argument("workspace", nargs="?", default=".", help="Workspace root (default: current directory)")

    return parser


async def _activate(runtime: RubyRuntime) -> dict:
    result = await runtime.activate()
    return {
        "manager": runtime.manager_identifier,
        "version": result.version,
        "yjit": result.yjit,
        "gem_path": list(result.gem_path),
        "env": dict(result.env),
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    workspace = Path(args.workspace).resolve()
    try:
        config = load_config(workspace)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.command == "detect":
        runtime = RubyRuntime(workspace, config=config)
        print(asyncio.run(runtime.detect_version_manager()))
        return 0

    if args.manager:
        config.version_manager.identifier = args.manager

    runtime = RubyRuntime(workspace, config=config)
    try:
        payload = asyncio.run(_activate(runtime))
    except ActivationError as e:
        print(f"Error [{e.error_code}]: {e}", file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
