"""
Argument parser setup for the flagyard CLI.

Defines all subcommands and their arguments:
- eval: Evaluate an expression against --set facts
- postfix: Show tokens and the compiled postfix program
- cohort: Show (and create on first access) the cohort percentage
- toggles: Resolve toggle definitions from a YAML file
"""

import argparse
from typing import Optional, Sequence


def setup_argparse(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments for flagyard_cli.

    Supports:
      eval EXPRESSION      Evaluate an expression (exit code 0 = true, 1 = false)
      postfix EXPRESSION   Show tokens and postfix order
      cohort               Show the persisted cohort percentage
      toggles FILE         Show effective values of YAML-defined toggles
    """
    parser = build_parser()
    return parser.parse_args(argv)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flagyard_cli.py",
        description="flagyard - feature flag and rollout rule engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python flagyard_cli.py eval "appVersion >= 2.0" --set appVersion=2.5
  python flagyard_cli.py eval "percentage <= 10" --store data/flagyard_store.json --trace
  python flagyard_cli.py postfix "(a == b) && c != d"
  python flagyard_cli.py cohort --store data/flagyard_store.duckdb
  python flagyard_cli.py toggles toggles.yml --set deviceType=tablet --overrides
        """
    )

    # Verbosity: mutually exclusive group (-q / -v / --debug)
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Quiet mode: WARNING only, minimal output"
    )
    verbosity.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Verbose mode: INFO logging"
    )
    verbosity.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Debug mode: DEBUG logging including evaluation traces"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _setup_eval_subcommand(subparsers)
    _setup_postfix_subcommand(subparsers)
    _setup_cohort_subcommand(subparsers)
    _setup_toggles_subcommand(subparsers)

    return parser


def _add_store_argument(parser) -> None:
    parser.add_argument(
        "--store",
        dest="store_path",
        default=None,
        help="Persistence file (.json, or .duckdb/.db for DuckDB). Default: FLAGYARD_STORE_BACKEND"
    )


def _add_set_argument(parser) -> None:
    parser.add_argument(
        "--set",
        dest="facts",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Condition value, e.g. --set appVersion=2.5 (repeatable)"
    )


def _setup_eval_subcommand(subparsers) -> None:
    eval_parser = subparsers.add_parser("eval", help="Evaluate an expression")
    eval_parser.add_argument("expression", help="Expression, e.g. \"appVersion >= 2.0 && percentage <= 10\"")
    _add_set_argument(eval_parser)
    _add_store_argument(eval_parser)
    eval_parser.add_argument("--trace", action="store_true", help="Print the per-operator evaluation trace")
    eval_parser.add_argument("--json", action="store_true", dest="json_output", help="Output the trace as JSON")


def _setup_postfix_subcommand(subparsers) -> None:
    postfix_parser = subparsers.add_parser("postfix", help="Show tokens and postfix program")
    postfix_parser.add_argument("expression", help="Expression to compile")


def _setup_cohort_subcommand(subparsers) -> None:
    cohort_parser = subparsers.add_parser("cohort", help="Show the cohort percentage")
    cohort_parser.add_argument("--key", default=None, help="Persistence key (default: FLAGYARD_COHORT_KEY)")
    _add_store_argument(cohort_parser)


def _setup_toggles_subcommand(subparsers) -> None:
    toggles_parser = subparsers.add_parser("toggles", help="Resolve toggles from a YAML file")
    toggles_parser.add_argument("file", help="YAML file with a top-level 'toggles' list")
    _add_set_argument(toggles_parser)
    _add_store_argument(toggles_parser)
    toggles_parser.add_argument(
        "--overrides",
        action="store_true",
        help="Enable local overrides (A/B expressions and persisted local values)"
    )
