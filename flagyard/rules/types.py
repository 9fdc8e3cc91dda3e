"""
Rule evaluation type definitions.

Enums and dataclasses shared by the tokenizer, converter and evaluator:
- ReasonCode: why a single evaluation step produced its value
- ValueDomain: declared value domain of a condition (coercion target)
- TypedValue: a raw context value or literal coerced into a domain
- EvalResult: outcome of one stack-machine step
- EvaluationTrace: outcome of a whole expression evaluation
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import Any


class ReasonCode(IntEnum):
    """
    Reason codes for evaluation outcomes.

    Every step of the postfix evaluator records one of these. Anything other
    than OK means the step resolved to False (fail-closed).
    """

    # Success
    OK = 0  # Step evaluated cleanly to true/false

    # Resolution failures
    UNKNOWN_CONDITION = auto()  # LHS is not a known condition name
    MISSING_VALUE = auto()  # Provider has no value for the condition

    # Type errors
    TYPE_MISMATCH = auto()  # Value or literal could not be coerced to the domain
    OPERATOR_MISMATCH = auto()  # Operator class does not fit the operands

    # Program shape
    STACK_UNDERFLOW = auto()  # Operator found fewer than two operands
    MALFORMED_PROGRAM = auto()  # Empty stack or leftover operands at the end
    UNPARSABLE_RESULT = auto()  # Final value is not a boolean literal

    # Internal
    INTERNAL_ERROR = auto()  # Unexpected exception inside the engine


class ValueDomain(IntEnum):
    """
    Value domains used for coercion during comparison.

    - FLOAT: ordered numeric comparison on floats (app version, percentage)
    - INT: ordered numeric comparison on integers (build number)
    - STRING: lexicographic comparison (device type, system version)
    """

    FLOAT = auto()
    INT = auto()
    STRING = auto()


@dataclass(frozen=True)
class TypedValue:
    """
    A value coerced into a ValueDomain.

    Wraps the converted Python value with the domain it was converted to and
    the text it came from (for traces).
    """

    value: Any  # float, int or str depending on domain
    domain: ValueDomain
    text: str

    @classmethod
    def coerce(cls, raw: Any, domain: ValueDomain) -> "TypedValue | None":
        """
        Coerce a raw value into a domain.

        Accepts literal text from an expression or a typed context value
        (int, float, str). Returns None when the value does not fit the domain;
        callers treat that as a type mismatch.

        Args:
            raw: Literal text or context value
            domain: Target domain

        Returns:
            TypedValue, or None if coercion failed
        """
        if raw is None or isinstance(raw, bool):
            return None

        if domain == ValueDomain.FLOAT:
            value = _to_float(raw)
        elif domain == ValueDomain.INT:
            value = _to_int(raw)
        else:
            value = _to_str(raw)

        if value is None:
            return None
        return cls(value=value, domain=domain, text=str(raw))


def _to_float(raw: Any) -> float | None:
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _to_int(raw: Any) -> int | None:
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        # Integer-like floats (150.0) are accepted, fractional ones are not
        if math.isnan(raw) or math.isinf(raw) or raw != int(raw):
            return None
        return int(raw)
    if isinstance(raw, str):
        try:
            return int(raw.strip(), 10)
        except ValueError:
            return None
    return None


def _to_str(raw: Any) -> str | None:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (int, float)):
        return str(raw)
    return None


@dataclass(frozen=True)
class EvalResult:
    """
    Result of one evaluation step.

    Contains:
    - ok: Boolean value the step pushed
    - reason: Why it evaluated this way
    - lhs / operator / rhs: Operands as seen by the stack machine
    - message: Human-readable explanation for failures
    """

    ok: bool
    reason: ReasonCode
    lhs: str | None = None
    operator: str | None = None
    rhs: str | None = None
    message: str | None = None

    @classmethod
    def success(cls, ok: bool, lhs: str, operator: str, rhs: str) -> "EvalResult":
        """Create a clean evaluation result."""
        return cls(ok=ok, reason=ReasonCode.OK, lhs=lhs, operator=operator, rhs=rhs)

    @classmethod
    def failure(
        cls,
        reason: ReasonCode,
        message: str,
        lhs: str | None = None,
        operator: str | None = None,
        rhs: str | None = None,
    ) -> "EvalResult":
        """Create a fail-closed result (always ok=False)."""
        return cls(
            ok=False,
            reason=reason,
            lhs=lhs,
            operator=operator,
            rhs=rhs,
            message=message,
        )

    @property
    def is_clean(self) -> bool:
        """True when the step evaluated without any resolution or type failure."""
        return self.reason == ReasonCode.OK

    def summary(self) -> str:
        """One-line `lhs op rhs = PASS|FAIL` form."""
        status = "PASS" if self.ok else "FAIL"
        line = f"{self.lhs or '?'} {self.operator or '?'} {self.rhs or '?'} = {status}"
        if self.reason != ReasonCode.OK:
            line += f" ({self.reason.name})"
        return line

    def to_dict(self) -> dict:
        """Convert to dict for logging/serialization."""
        return {
            "ok": self.ok,
            "reason": self.reason.name,
            "lhs": self.lhs,
            "operator": self.operator,
            "rhs": self.rhs,
            "message": self.message,
        }


@dataclass
class EvaluationTrace:
    """Full trace of one expression evaluation."""

    expression: str
    postfix: list[str]
    result: bool
    reason: ReasonCode
    steps: list[EvalResult] = field(default_factory=list)

    @property
    def failures(self) -> list[EvalResult]:
        return [s for s in self.steps if not s.is_clean]

    def format_lines(self) -> list[str]:
        """Format trace as human-readable log lines (no prefix, caller adds it)."""
        lines = [
            f"RULE TRACE: {self.expression!r} -> {self.result} ({self.reason.name})",
            f"  postfix: {' '.join(self.postfix) if self.postfix else '<empty>'}",
        ]
        for i, step in enumerate(self.steps):
            lines.append(f"  step[{i}]: {step.summary()}")
        return lines

    def to_dict(self) -> dict:
        return {
            "expression": self.expression,
            "postfix": list(self.postfix),
            "result": self.result,
            "reason": self.reason.name,
            "steps": [s.to_dict() for s in self.steps],
        }
