"""
Tests for infix -> postfix conversion.

Verifies the precedence rule (relational binds tighter, equal precedence groups
left to right), parenthesis handling and the output guarantees.
"""

import pytest

from flagyard.rules.registry import OperatorKind, has_higher_or_equal_precedence
from flagyard.rules.shunting_yard import to_postfix
from flagyard.rules.tokenizer import LeftParen, RightParen, format_tokens, tokenize


def postfix(expression: str) -> str:
    return format_tokens(to_postfix(tokenize(expression)))


class TestPrecedence:
    """Tests for has_higher_or_equal_precedence()."""

    @pytest.mark.parametrize("top", [k for k in OperatorKind if k.is_relational])
    def test_relational_top_always_pops(self, top):
        for incoming in OperatorKind:
            assert has_higher_or_equal_precedence(top, incoming)

    def test_logical_top_pops_for_logical(self):
        assert has_higher_or_equal_precedence(OperatorKind.AND, OperatorKind.OR)
        assert has_higher_or_equal_precedence(OperatorKind.OR, OperatorKind.AND)

    def test_logical_top_stays_for_relational(self):
        assert not has_higher_or_equal_precedence(OperatorKind.AND, OperatorKind.EQUAL)
        assert not has_higher_or_equal_precedence(OperatorKind.OR, OperatorKind.LESS_THAN)


class TestToPostfix:
    """Tests for to_postfix()."""

    def test_single_comparison(self):
        assert postfix("appVersion >= 2.0") == "appVersion 2.0 >="

    def test_relational_binds_tighter_than_logical(self):
        assert postfix("a == b && c == d") == "a b == c d == &&"

    def test_logical_chain_is_left_associative(self):
        assert postfix("a == b && c == d || e == f") == "a b == c d == && e f == ||"

    def test_and_does_not_outrank_or(self):
        """&& and || share a precedence level; evaluation is left to right."""
        assert postfix("true || false && false") == "true false || false &&"

    def test_parentheses_override_order(self):
        assert postfix("a == b && (c == d || e == f)") == "a b == c d == e f == || &&"

    def test_empty(self):
        assert to_postfix([]) == ()

    def test_returns_tuple(self):
        assert isinstance(to_postfix(tokenize("a == b")), tuple)

    @pytest.mark.parametrize("expression", [
        "(appVersion >= 2.0) && (deviceType == tablet)",
        "((a == b)",
        "a == b))",
        "(",
        ")",
        "()",
        "a && || b",
    ])
    def test_output_has_no_parentheses_and_is_not_longer(self, expression):
        tokens = tokenize(expression)
        program = to_postfix(tokens)
        assert not any(isinstance(t, (LeftParen, RightParen)) for t in program)
        assert len(program) <= len(tokens)

    def test_stray_right_paren_flushes_operators(self):
        assert postfix("a == b) && c") == "a b == c &&"

    def test_stray_left_paren_dropped(self):
        assert postfix("(a == b") == "a b =="
