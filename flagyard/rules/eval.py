"""
Operator implementations for rule evaluation.

Type contracts:
- Relational operators compare a condition value with a literal, both coerced
  to the condition's declared domain (FLOAT, INT or STRING)
- Logical operators combine two boolean literals

Every evaluation returns EvalResult with ReasonCode; nothing here raises.
"""

from __future__ import annotations

import operator
from typing import Any, Callable

from .registry import Condition, OperatorKind
from .types import EvalResult, ReasonCode, TypedValue

TRUE_LITERALS = frozenset({"true", "t", "yes", "y", "1"})
FALSE_LITERALS = frozenset({"false", "f", "no", "n", "0"})


def parse_bool(text: str | None) -> bool | None:
    """
    Parse a boolean literal (case-insensitive).

    true/t/yes/y/1 -> True, false/f/no/n/0 -> False, anything else -> None.
    """
    if text is None:
        return None
    lowered = text.lower()
    if lowered in TRUE_LITERALS:
        return True
    if lowered in FALSE_LITERALS:
        return False
    return None


def bool_literal(value: bool) -> str:
    """Canonical literal text pushed back onto the value stack."""
    return "true" if value else "false"


_RELATIONAL: dict[OperatorKind, Callable[[Any, Any], bool]] = {
    OperatorKind.NOT_EQUAL: operator.ne,
    OperatorKind.LESS_THAN: operator.lt,
    OperatorKind.LESS_EQUAL: operator.le,
    OperatorKind.EQUAL: operator.eq,
    OperatorKind.GREATER_THAN: operator.gt,
    OperatorKind.GREATER_EQUAL: operator.ge,
}

_LOGICAL: dict[OperatorKind, Callable[[bool, bool], bool]] = {
    OperatorKind.AND: lambda a, b: a and b,
    OperatorKind.OR: lambda a, b: a or b,
}


def compare_values(lhs: TypedValue, rhs: TypedValue, kind: OperatorKind) -> bool:
    """
    Ordered comparison of two values in the same domain.

    Raises:
        KeyError: If kind is not relational (callers check first)
    """
    return _RELATIONAL[kind](lhs.value, rhs.value)


def eval_logical(lhs: bool, rhs: bool, kind: OperatorKind) -> EvalResult:
    """Combine two boolean literals with AND/OR."""
    fn = _LOGICAL.get(kind)
    if fn is None:
        return EvalResult.failure(
            ReasonCode.OPERATOR_MISMATCH,
            f"Operator '{kind.symbol}' cannot combine boolean literals",
            lhs=bool_literal(lhs),
            operator=kind.symbol,
            rhs=bool_literal(rhs),
        )
    return EvalResult.success(fn(lhs, rhs), bool_literal(lhs), kind.symbol, bool_literal(rhs))


def eval_condition(
    condition: Condition,
    context_value: Any,
    rhs_text: str,
    kind: OperatorKind,
) -> EvalResult:
    """
    Compare a condition's current value with a literal.

    Args:
        condition: Left-hand condition
        context_value: Value resolved from the provider (None if absent)
        rhs_text: Right-hand literal text
        kind: Relational operator

    Returns:
        EvalResult; failures always carry ok=False
    """
    lhs_name = condition.value
    symbol = kind.symbol

    if kind not in _RELATIONAL:
        return EvalResult.failure(
            ReasonCode.OPERATOR_MISMATCH,
            f"Operator '{symbol}' is not relational",
            lhs=lhs_name,
            operator=symbol,
            rhs=rhs_text,
        )

    if context_value is None:
        return EvalResult.failure(
            ReasonCode.MISSING_VALUE,
            f"No value available for condition '{lhs_name}'",
            lhs=lhs_name,
            operator=symbol,
            rhs=rhs_text,
        )

    domain = condition.domain
    lhs = TypedValue.coerce(context_value, domain)
    if lhs is None:
        return EvalResult.failure(
            ReasonCode.TYPE_MISMATCH,
            f"Context value {context_value!r} for '{lhs_name}' is not {domain.name}",
            lhs=lhs_name,
            operator=symbol,
            rhs=rhs_text,
        )

    rhs = TypedValue.coerce(rhs_text, domain)
    if rhs is None:
        return EvalResult.failure(
            ReasonCode.TYPE_MISMATCH,
            f"Literal {rhs_text!r} is not {domain.name} (required by '{lhs_name}')",
            lhs=lhs_name,
            operator=symbol,
            rhs=rhs_text,
        )

    return EvalResult.success(compare_values(lhs, rhs, kind), lhs_name, symbol, rhs_text)
