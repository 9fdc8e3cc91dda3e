"""
Operator and Condition Registry - Single source of truth for rule semantics.

All operator and condition rules are defined here. Used by:
- Tokenizer (two-character spellings -> single internal symbols)
- Shunting-yard converter (precedence classes)
- Postfix evaluator (condition domains, comparison dispatch)

Design:
- OperatorKind and Condition are closed enums; unknown strings only exist at
  the parse boundary (OperatorKind.from_internal, Condition.parse)
- Adding a condition requires updating CONDITION_REGISTRY
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import FrozenSet

from .types import ValueDomain


class OpCategory(Enum):
    """Operator precedence classes."""
    RELATIONAL = auto()  # ==, !=, <, <=, >, >=
    LOGICAL = auto()     # &&, ||


class OperatorKind(str, Enum):
    """Supported operators, valued by their canonical spelling."""

    # Relational
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    LESS_EQUAL = "<="
    EQUAL = "=="
    GREATER_THAN = ">"
    GREATER_EQUAL = ">="

    # Logical
    AND = "&&"
    OR = "||"

    @property
    def spec(self) -> "OperatorSpec":
        return OPERATOR_REGISTRY[self]

    @property
    def symbol(self) -> str:
        """Canonical symbol as written in expressions."""
        return self.value

    @property
    def internal_symbol(self) -> str:
        """Single-character symbol the tokenizer scans for."""
        return self.spec.internal_symbol

    @property
    def category(self) -> OpCategory:
        return self.spec.category

    @property
    def is_relational(self) -> bool:
        return self.category == OpCategory.RELATIONAL

    @property
    def is_logical(self) -> bool:
        return self.category == OpCategory.LOGICAL

    @classmethod
    def from_internal(cls, char: str) -> "OperatorKind | None":
        """Look up an operator by its internal single-character symbol."""
        return _BY_INTERNAL_SYMBOL.get(char)


@dataclass(frozen=True)
class OperatorSpec:
    """
    Registry entry for a single operator.

    Attributes:
        kind: Operator enum member
        internal_symbol: Single character used after normalization
        category: Precedence class
    """
    kind: OperatorKind
    internal_symbol: str
    category: OpCategory


# =============================================================================
# OPERATOR REGISTRY
# =============================================================================

OPERATOR_REGISTRY: dict[OperatorKind, OperatorSpec] = {
    OperatorKind.NOT_EQUAL: OperatorSpec(OperatorKind.NOT_EQUAL, "~", OpCategory.RELATIONAL),
    OperatorKind.LESS_THAN: OperatorSpec(OperatorKind.LESS_THAN, "<", OpCategory.RELATIONAL),
    OperatorKind.LESS_EQUAL: OperatorSpec(OperatorKind.LESS_EQUAL, "$", OpCategory.RELATIONAL),
    OperatorKind.EQUAL: OperatorSpec(OperatorKind.EQUAL, "=", OpCategory.RELATIONAL),
    OperatorKind.GREATER_THAN: OperatorSpec(OperatorKind.GREATER_THAN, ">", OpCategory.RELATIONAL),
    OperatorKind.GREATER_EQUAL: OperatorSpec(OperatorKind.GREATER_EQUAL, "#", OpCategory.RELATIONAL),
    OperatorKind.AND: OperatorSpec(OperatorKind.AND, "&", OpCategory.LOGICAL),
    OperatorKind.OR: OperatorSpec(OperatorKind.OR, "|", OpCategory.LOGICAL),
}

_BY_INTERNAL_SYMBOL: dict[str, OperatorKind] = {
    spec.internal_symbol: kind for kind, spec in OPERATOR_REGISTRY.items()
}

# Two-character spellings rewritten before scanning. Order matters: `&&` and
# `||` first, then the comparison pairs.
_NORMALIZATION_ORDER: tuple[OperatorKind, ...] = (
    OperatorKind.AND,
    OperatorKind.OR,
    OperatorKind.EQUAL,
    OperatorKind.GREATER_EQUAL,
    OperatorKind.LESS_EQUAL,
    OperatorKind.NOT_EQUAL,
)

NORMALIZATIONS: tuple[tuple[str, str], ...] = tuple(
    (kind.symbol, kind.internal_symbol) for kind in _NORMALIZATION_ORDER
)


def has_higher_or_equal_precedence(top: OperatorKind, incoming: OperatorKind) -> bool:
    """
    Decide whether the stack top pops before `incoming` is pushed.

    A relational top always wins, even against another relational operator.
    A logical top wins only against another logical operator.
    """
    if top.is_relational:
        return True
    return top.is_logical and incoming.is_logical


# =============================================================================
# CONDITION REGISTRY
# =============================================================================

class Condition(str, Enum):
    """Named runtime facts usable as the left operand of a comparison."""

    APP_VERSION = "appVersion"
    BUILD_NUMBER = "buildNumber"
    DEVICE_GENERATION = "deviceGeneration"
    DEVICE_MODEL = "deviceModel"
    DEVICE_NAME = "deviceName"
    DEVICE_TYPE = "deviceType"
    OPERATING_SYSTEM = "operatingSystem"
    PERCENTAGE = "percentage"
    SYSTEM_VERSION = "systemVersion"

    @property
    def domain(self) -> ValueDomain:
        return CONDITION_REGISTRY[self].domain

    @property
    def description(self) -> str:
        return CONDITION_REGISTRY[self].description

    @classmethod
    def parse(cls, name: str | None) -> "Condition | None":
        """
        Resolve an identifier to a Condition (case-sensitive).

        Returns None for unknown names instead of raising.
        """
        if not name:
            return None
        return _BY_NAME.get(name)


@dataclass(frozen=True)
class ConditionSpec:
    """Declared domain and documentation for a condition."""
    condition: Condition
    domain: ValueDomain
    description: str


CONDITION_REGISTRY: dict[Condition, ConditionSpec] = {
    Condition.APP_VERSION: ConditionSpec(
        Condition.APP_VERSION, ValueDomain.FLOAT,
        "Marketing version of the running application, e.g. 52.0",
    ),
    Condition.BUILD_NUMBER: ConditionSpec(
        Condition.BUILD_NUMBER, ValueDomain.INT,
        "Build number of the running application, e.g. 4356092",
    ),
    Condition.DEVICE_GENERATION: ConditionSpec(
        Condition.DEVICE_GENERATION, ValueDomain.FLOAT,
        "Hardware generation of the running device, e.g. 10",
    ),
    Condition.DEVICE_MODEL: ConditionSpec(
        Condition.DEVICE_MODEL, ValueDomain.STRING,
        "Model identifier of the running device, e.g. iPhone12,5",
    ),
    Condition.DEVICE_NAME: ConditionSpec(
        Condition.DEVICE_NAME, ValueDomain.STRING,
        "User-assigned device name",
    ),
    Condition.DEVICE_TYPE: ConditionSpec(
        Condition.DEVICE_TYPE, ValueDomain.STRING,
        "Device class, e.g. simulator, phone, tablet",
    ),
    Condition.OPERATING_SYSTEM: ConditionSpec(
        Condition.OPERATING_SYSTEM, ValueDomain.STRING,
        "Operating system name",
    ),
    Condition.PERCENTAGE: ConditionSpec(
        Condition.PERCENTAGE, ValueDomain.FLOAT,
        "Per-install cohort percentage in [0, 100)",
    ),
    Condition.SYSTEM_VERSION: ConditionSpec(
        Condition.SYSTEM_VERSION, ValueDomain.STRING,
        "Operating system version, e.g. 13.3",
    ),
}

_BY_NAME: dict[str, Condition] = {c.value: c for c in Condition}

CONDITION_NAMES: FrozenSet[str] = frozenset(_BY_NAME)
