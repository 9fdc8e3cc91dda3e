"""
Subcommand handlers for the flagyard CLI.

All handle_* functions are module-level, accept an `args` namespace and return
a process exit code. They are dispatched from main() in flagyard_cli.py.

Exit codes:
- 0: success (for `eval`, the expression evaluated to true)
- 1: `eval` evaluated to false
- 2: bad arguments, unreadable toggle file or store failure
"""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config.config import get_config
from ..engine import RuleEngine
from ..errors import StoreError, ToggleConfigError
from ..providers import StaticConditionProvider
from ..rules.postfix_eval import referenced_conditions
from ..rules.shunting_yard import to_postfix
from ..rules.tokenizer import format_tokens, tokenize
from ..store.backends import (
    DuckDBBackend,
    JsonFileBackend,
    KeyValueBackend,
    create_backend,
)
from ..toggles import Toggler, load_toggles

# Global Console
console = Console()

EXIT_TRUE = 0
EXIT_FALSE = 1
EXIT_USAGE = 2

DUCKDB_SUFFIXES = (".duckdb", ".db")


# =============================================================================
# SHARED HELPERS
# =============================================================================

def parse_facts(pairs: list[str]) -> dict[str, str]:
    """
    Parse repeated `--set name=value` arguments.

    Raises:
        ValueError: If a pair has no '=' or an empty name
    """
    facts: dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Expected NAME=VALUE, got '{pair}'")
        facts[name] = value.strip()
    return facts


def open_backend(store_path: str | None) -> KeyValueBackend:
    """Backend for --store, falling back to the configured one."""
    if store_path is None:
        return create_backend(get_config().store)
    if Path(store_path).suffix.lower() in DUCKDB_SUFFIXES:
        return DuckDBBackend(store_path)
    return JsonFileBackend(store_path)


def _close_backend(backend: KeyValueBackend) -> None:
    close = getattr(backend, "close", None)
    if close is not None:
        close()


def _build_engine(args) -> RuleEngine | None:
    """Engine from --set/--store, or None after printing the error."""
    try:
        provider = StaticConditionProvider(parse_facts(getattr(args, "facts", [])))
    except ValueError as e:
        console.print(f"[red]Error: {e}[/]")
        return None

    try:
        backend = open_backend(getattr(args, "store_path", None))
    except StoreError as e:
        console.print(f"[red]Store error: {e}[/]")
        return None

    return RuleEngine(provider, backend=backend)


def _print_trace_steps(trace) -> None:
    table = Table(title="Evaluation Steps")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Step", style="bold")
    table.add_column("Result")
    table.add_column("Reason")
    table.add_column("Message", style="dim")

    for i, step in enumerate(trace.steps):
        result = "[green]true[/]" if step.ok else "[red]false[/]"
        reason = step.reason.name if step.is_clean else f"[yellow]{step.reason.name}[/]"
        table.add_row(
            str(i),
            f"{step.lhs or '?'} {step.operator or '?'} {step.rhs or '?'}",
            result,
            reason,
            step.message or "",
        )
    console.print(table)


# =============================================================================
# HANDLERS
# =============================================================================

def handle_eval(args) -> int:
    """Evaluate one expression and print the result."""
    engine = _build_engine(args)
    if engine is None:
        return EXIT_USAGE

    try:
        trace = engine.explain(args.expression)
    finally:
        _close_backend(engine.backend)

    if getattr(args, "json_output", False):
        print(json.dumps(trace.to_dict(), indent=2))
        return EXIT_TRUE if trace.result else EXIT_FALSE

    color = "green" if trace.result else "red"
    console.print(f"[bold {color}]{str(trace.result).lower()}[/]  [dim]{trace.expression}[/]")

    if args.trace:
        console.print(f"[dim]postfix:[/] {' '.join(trace.postfix) or '<empty>'}")
        console.print(f"[dim]reason:[/] {trace.reason.name}")
        if trace.steps:
            _print_trace_steps(trace)

    return EXIT_TRUE if trace.result else EXIT_FALSE


def handle_postfix(args) -> int:
    """Show the token stream and postfix program for an expression."""
    tokens = tokenize(args.expression)
    program = to_postfix(tokens)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim", width=12)
    table.add_column("Value", style="bold")
    table.add_row("Expression", args.expression)
    table.add_row("Tokens", format_tokens(tokens) or "<empty>")
    table.add_row("Postfix", format_tokens(program) or "<empty>")
    for condition in sorted(referenced_conditions(program), key=lambda c: c.value):
        table.add_row(
            "Condition",
            f"{condition.value} ({condition.domain.name.lower()}): {condition.description}",
        )
    console.print(table)
    return EXIT_TRUE


def handle_cohort(args) -> int:
    """Show (and create on first access) the cohort percentage."""
    try:
        backend = open_backend(args.store_path)
    except StoreError as e:
        console.print(f"[red]Store error: {e}[/]")
        return EXIT_USAGE

    engine = RuleEngine(backend=backend)
    key = args.key or engine.cohort_key
    try:
        value = engine.cohort_percentage(key)
    except StoreError as e:
        console.print(f"[red]Store error: {e}[/]")
        return EXIT_USAGE
    finally:
        _close_backend(backend)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim", width=12)
    table.add_column("Value", style="bold")
    table.add_row("Key", key)
    table.add_row("Store", repr(backend))
    table.add_row("Percentage", f"{value:.4f}")
    console.print(table)
    return EXIT_TRUE


def handle_toggles(args) -> int:
    """Resolve every toggle in a YAML file and print a table."""
    try:
        toggles = load_toggles(args.file)
    except ToggleConfigError as e:
        console.print(f"[red]Toggle file error: {e}[/]")
        return EXIT_USAGE

    engine = _build_engine(args)
    if engine is None:
        return EXIT_USAGE

    toggler = Toggler(engine)
    toggler.configure_many(toggles)

    try:
        if args.overrides:
            toggler.local_overrides_enabled = True
        overrides = toggler.local_overrides_enabled
        values = toggler.values()
    except StoreError as e:
        console.print(f"[red]Store error: {e}[/]")
        return EXIT_USAGE
    finally:
        _close_backend(engine.backend)

    table = Table(title=f"Toggles ({'overrides on' if overrides else 'remote values'})")
    table.add_column("Name", style="bold")
    table.add_column("Remote")
    table.add_column("A/B Expression", style="dim")
    table.add_column("Value")

    for toggle in toggles:
        value = values.get(toggle.name, False)
        table.add_row(
            toggle.name,
            str(toggle.remote_value).lower(),
            toggle.ab_expression or "",
            "[green]on[/]" if value else "[red]off[/]",
        )
    console.print(table)
    return EXIT_TRUE
