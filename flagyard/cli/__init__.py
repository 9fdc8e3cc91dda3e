"""
Command-line interface for flagyard.

Exposes setup_argparse() and the handle_* subcommand handlers used by
flagyard_cli.py.
"""

from .argparser import build_parser, setup_argparse
from .commands import (
    console,
    handle_cohort,
    handle_eval,
    handle_postfix,
    handle_toggles,
    open_backend,
    parse_facts,
)

__all__ = [
    "build_parser",
    "setup_argparse",
    "console",
    "handle_eval",
    "handle_postfix",
    "handle_cohort",
    "handle_toggles",
    "open_backend",
    "parse_facts",
]
