"""
Expression tokenizer.

Turns a raw expression string into an ordered token list:

    "deviceType == tablet && appVersion >= 2.0"
    -> Operand(deviceType) ==  Operand(tablet) && Operand(appVersion) >= Operand(2.0)

Whitespace is stripped and two-character operators are normalized to single
internal symbols first, so the scanner only looks at one character at a time.
Anything that is not an operator symbol or a parenthesis is operand text; the
tokenizer never raises on malformed input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .registry import NORMALIZATIONS, OperatorKind

LEFT_PAREN = "("
RIGHT_PAREN = ")"


@dataclass(frozen=True)
class Operand:
    """Operand text (condition name or literal)."""
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class OperatorToken:
    """Operator token."""
    kind: OperatorKind

    def __str__(self) -> str:
        return self.kind.symbol


@dataclass(frozen=True)
class LeftParen:
    def __str__(self) -> str:
        return LEFT_PAREN


@dataclass(frozen=True)
class RightParen:
    def __str__(self) -> str:
        return RIGHT_PAREN


Token = Union[Operand, OperatorToken, LeftParen, RightParen]


def normalize(expression: str) -> str:
    """Strip whitespace and rewrite two-character operators to internal symbols."""
    text = "".join(expression.split())
    for spelling, internal in NORMALIZATIONS:
        text = text.replace(spelling, internal)
    return text


def _special_token(char: str) -> Token | None:
    if char == LEFT_PAREN:
        return LeftParen()
    if char == RIGHT_PAREN:
        return RightParen()
    kind = OperatorKind.from_internal(char)
    if kind is not None:
        return OperatorToken(kind)
    return None


def tokenize(expression: str | None) -> list[Token]:
    """
    Tokenize an expression.

    Args:
        expression: Raw expression string (None is treated as empty)

    Returns:
        Ordered list of tokens, never containing empty operands
    """
    if not expression:
        return []

    tokens: list[Token] = []
    buffer: list[str] = []

    for char in normalize(expression):
        special = _special_token(char)
        if special is None:
            buffer.append(char)
            continue
        if buffer:
            tokens.append(Operand("".join(buffer)))
            buffer.clear()
        tokens.append(special)

    if buffer:
        tokens.append(Operand("".join(buffer)))

    return tokens


def format_tokens(tokens) -> str:
    """Render tokens space-separated, using canonical operator spellings."""
    return " ".join(str(t) for t in tokens)
