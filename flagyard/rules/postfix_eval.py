"""
Postfix (RPN) stack-machine evaluator.

Consumes a program produced by to_postfix() and a snapshot of condition values.
Operands are pushed as raw text; each operator pops rhs then lhs and pushes a
boolean literal back:

- both operands are boolean literals and the operator is logical
  -> AND/OR of the two
- lhs names a known condition and the operator is relational
  -> typed comparison in the condition's domain
- anything else -> false

The final stack must hold exactly one boolean literal; every other shape
resolves to False. Evaluation is total: it always returns a trace with a
definite result and never raises.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .eval import bool_literal, eval_condition, eval_logical, parse_bool
from .registry import Condition, OperatorKind
from .shunting_yard import PostfixProgram
from .tokenizer import Operand, OperatorToken
from .types import EvalResult, EvaluationTrace, ReasonCode


def referenced_conditions(program: Iterable) -> set[Condition]:
    """Collect every condition named by an operand in the program."""
    found: set[Condition] = set()
    for token in program:
        if isinstance(token, Operand):
            condition = Condition.parse(token.text)
            if condition is not None:
                found.add(condition)
    return found


def apply_operator(
    lhs: str,
    kind: OperatorKind,
    rhs: str,
    snapshot: Mapping[Condition, Any],
) -> EvalResult:
    """Evaluate one operator against its two popped operands."""
    lhs_bool = parse_bool(lhs)
    rhs_bool = parse_bool(rhs)
    if kind.is_logical and lhs_bool is not None and rhs_bool is not None:
        return eval_logical(lhs_bool, rhs_bool, kind)

    condition = Condition.parse(lhs)
    if kind.is_relational:
        if condition is None:
            return EvalResult.failure(
                ReasonCode.UNKNOWN_CONDITION,
                f"Unknown condition '{lhs}'",
                lhs=lhs,
                operator=kind.symbol,
                rhs=rhs,
            )
        return eval_condition(condition, snapshot.get(condition), rhs, kind)

    return EvalResult.failure(
        ReasonCode.OPERATOR_MISMATCH,
        f"Operator '{kind.symbol}' needs boolean operands",
        lhs=lhs,
        operator=kind.symbol,
        rhs=rhs,
    )


def evaluate_postfix(
    program: PostfixProgram,
    snapshot: Mapping[Condition, Any],
    expression: str = "",
) -> EvaluationTrace:
    """
    Run a postfix program.

    Args:
        program: Postfix tokens
        snapshot: Condition values for this evaluation (missing key = absent)
        expression: Source expression, for the trace only

    Returns:
        EvaluationTrace with the final boolean and one step per operator
    """
    stack: list[str] = []
    steps: list[EvalResult] = []

    for token in program:
        if isinstance(token, Operand):
            stack.append(token.text)
            continue
        if not isinstance(token, OperatorToken):
            # to_postfix() never emits parentheses; ignore anything foreign
            continue

        kind = token.kind
        rhs = stack.pop() if stack else None
        lhs = stack.pop() if stack else None
        if lhs is None or rhs is None:
            result = EvalResult.failure(
                ReasonCode.STACK_UNDERFLOW,
                f"Operator '{kind.symbol}' needs two operands",
                lhs=lhs,
                operator=kind.symbol,
                rhs=rhs,
            )
        else:
            result = apply_operator(lhs, kind, rhs, snapshot)

        steps.append(result)
        stack.append(bool_literal(result.ok))

    postfix = [str(t) for t in program]

    if len(stack) != 1:
        return EvaluationTrace(
            expression=expression,
            postfix=postfix,
            result=False,
            reason=ReasonCode.MALFORMED_PROGRAM,
            steps=steps,
        )

    value = parse_bool(stack[0])
    if value is None:
        return EvaluationTrace(
            expression=expression,
            postfix=postfix,
            result=False,
            reason=ReasonCode.UNPARSABLE_RESULT,
            steps=steps,
        )

    return EvaluationTrace(
        expression=expression,
        postfix=postfix,
        result=value,
        reason=ReasonCode.OK,
        steps=steps,
    )
