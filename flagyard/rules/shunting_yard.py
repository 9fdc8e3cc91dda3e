"""
Shunting-yard converter: infix tokens -> postfix (RPN) program.

Precedence rule:
- A relational operator on top of the stack always pops before the incoming
  operator is pushed, including when the incoming operator is relational.
- A logical operator on top pops only before another logical operator.

Equal-precedence chains therefore group left to right:

    a == b && c == d || e == f
    -> a b == c d == && e f == ||

Unbalanced parentheses are absorbed rather than reported: a stray `)` pops
whatever operators remain, a stray `(` is dropped at the end. The postfix
evaluator then resolves the leftovers to False.
"""

from __future__ import annotations

from typing import Sequence, Union

from .registry import has_higher_or_equal_precedence
from .tokenizer import LeftParen, Operand, OperatorToken, RightParen, Token

PostfixProgram = tuple[Union[Operand, OperatorToken], ...]


def to_postfix(tokens: Sequence[Token]) -> PostfixProgram:
    """
    Convert an infix token list to postfix order.

    Guarantees:
    - Output never contains LeftParen/RightParen
    - len(output) <= len(tokens)

    Args:
        tokens: Infix tokens from tokenize()

    Returns:
        Postfix program as an immutable tuple
    """
    output: list[Token] = []
    stack: list[Token] = []

    for token in tokens:
        if isinstance(token, Operand):
            output.append(token)

        elif isinstance(token, OperatorToken):
            while (
                stack
                and isinstance(stack[-1], OperatorToken)
                and has_higher_or_equal_precedence(stack[-1].kind, token.kind)
            ):
                output.append(stack.pop())
            stack.append(token)

        elif isinstance(token, LeftParen):
            stack.append(token)

        elif isinstance(token, RightParen):
            while stack and not isinstance(stack[-1], LeftParen):
                output.append(stack.pop())
            if stack:
                stack.pop()  # matching LeftParen, never emitted

    while stack:
        top = stack.pop()
        if isinstance(top, OperatorToken):
            output.append(top)

    return tuple(output)
