"""
Collaborator protocols consumed by the rule engine.

Providers supply runtime facts (app version, device type, ...) from the host
application. The engine never imports host code; it only relies on these
shapes.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from .registry import Condition


@runtime_checkable
class ConditionValueProvider(Protocol):
    """Resolves the current value of a condition, or None when absent."""

    def value_for(self, condition: Condition) -> Any: ...


@runtime_checkable
class SnapshotConditionProvider(ConditionValueProvider, Protocol):
    """Provider that can hand out a consistent copy of all its values at once."""

    def snapshot(self) -> Mapping[Condition, Any]: ...
