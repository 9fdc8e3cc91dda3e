#!/usr/bin/env python3
"""
flagyard CLI.

Non-interactive entry point for evaluating rules, inspecting compiled
programs, reading the cohort percentage and resolving toggle files.

Usage:
    python flagyard_cli.py eval "appVersion >= 2.0" --set appVersion=2.5
    python flagyard_cli.py postfix "a == b && c == d"
    python flagyard_cli.py cohort --store data/flagyard_store.json
    python flagyard_cli.py toggles toggles.yml --overrides
"""

import sys

from flagyard.cli import (
    console,
    handle_cohort,
    handle_eval,
    handle_postfix,
    handle_toggles,
    setup_argparse,
)
from flagyard.config.config import get_config
from flagyard.errors import ConfigError
from flagyard.utils.logger import setup_logger


def _log_level(args, default: str) -> str:
    if args.debug:
        return "DEBUG"
    if args.verbose:
        return "INFO"
    if args.quiet:
        return "WARNING"
    return default


def main(argv=None) -> int:
    """Main entry point."""
    # Parse CLI arguments FIRST (before any config or logging)
    args = setup_argparse(argv)

    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/]")
        return 2

    setup_logger(config.log.log_dir or None, _log_level(args, config.log.level))
    if args.debug:
        config.eval.trace_evaluations = True

    if args.command == "eval":
        return handle_eval(args)
    elif args.command == "postfix":
        return handle_postfix(args)
    elif args.command == "cohort":
        return handle_cohort(args)
    elif args.command == "toggles":
        return handle_toggles(args)
    else:
        console.print("[yellow]Usage: flagyard_cli.py {eval|postfix|cohort|toggles} --help[/]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
