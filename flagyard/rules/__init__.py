"""
Rule evaluation module for flag and rollout expressions.

Pipeline: tokenize -> to_postfix -> evaluate_postfix.

Design principles:
- Closed enums for operators and conditions (registry.py)
- Fail-closed evaluation: malformed or unresolvable input yields False
- ReasonCode for every evaluation step
- Precedence: relational over logical, left to right within a class
"""

from .types import (
    ReasonCode,
    ValueDomain,
    TypedValue,
    EvalResult,
    EvaluationTrace,
)
from .registry import (
    OpCategory,
    OperatorKind,
    OperatorSpec,
    OPERATOR_REGISTRY,
    Condition,
    ConditionSpec,
    CONDITION_REGISTRY,
    CONDITION_NAMES,
    has_higher_or_equal_precedence,
)
from .tokenizer import (
    Token,
    Operand,
    OperatorToken,
    LeftParen,
    RightParen,
    tokenize,
    format_tokens,
)
from .shunting_yard import PostfixProgram, to_postfix
from .eval import parse_bool, eval_condition, eval_logical
from .postfix_eval import evaluate_postfix, referenced_conditions
from .protocols import ConditionValueProvider, SnapshotConditionProvider

__all__ = [
    # Types
    "ReasonCode",
    "ValueDomain",
    "TypedValue",
    "EvalResult",
    "EvaluationTrace",
    # Registry
    "OpCategory",
    "OperatorKind",
    "OperatorSpec",
    "OPERATOR_REGISTRY",
    "Condition",
    "ConditionSpec",
    "CONDITION_REGISTRY",
    "CONDITION_NAMES",
    "has_higher_or_equal_precedence",
    # Tokenizer
    "Token",
    "Operand",
    "OperatorToken",
    "LeftParen",
    "RightParen",
    "tokenize",
    "format_tokens",
    # Conversion
    "PostfixProgram",
    "to_postfix",
    # Evaluation
    "parse_bool",
    "eval_condition",
    "eval_logical",
    "evaluate_postfix",
    "referenced_conditions",
    # Protocols
    "ConditionValueProvider",
    "SnapshotConditionProvider",
]
