"""
Condition value providers.

The host application supplies runtime facts through a provider. Two are
shipped here:

- StaticConditionProvider: thread-safe mapping, updated by the host when facts
  change; hands out atomic snapshots
- PlatformConditionProvider: facts about the running Python host (OS name and
  version, machine, node name), plus app version/build number from the caller

The `percentage` condition is never read from a provider; the engine serves it
from its cohort store.
"""

from __future__ import annotations

import platform
import threading
from typing import Any, Mapping

from .rules.registry import CONDITION_NAMES, Condition


def _to_condition(name: Condition | str) -> Condition:
    if isinstance(name, Condition):
        return name
    condition = Condition.parse(name)
    if condition is None:
        known = ", ".join(sorted(CONDITION_NAMES))
        raise ValueError(f"Unknown condition '{name}'. Known conditions: {known}")
    return condition


class StaticConditionProvider:
    """
    Mapping-backed provider.

    Keys may be Condition members or their expression names ("appVersion").
    Unknown names raise ValueError here, at the host boundary, so typos in
    host wiring are not silently turned into False at evaluation time.
    """

    def __init__(self, values: Mapping[Condition | str, Any] | None = None, **kwargs: Any):
        self._lock = threading.Lock()
        self._values: dict[Condition, Any] = {}
        merged: dict[Condition | str, Any] = dict(values or {})
        merged.update(kwargs)
        for name, value in merged.items():
            self._values[_to_condition(name)] = value

    def value_for(self, condition: Condition) -> Any:
        with self._lock:
            return self._values.get(condition)

    def snapshot(self) -> dict[Condition, Any]:
        with self._lock:
            return dict(self._values)

    def set(self, condition: Condition | str, value: Any) -> None:
        """Set (or clear, with None) one fact."""
        key = _to_condition(condition)
        with self._lock:
            if value is None:
                self._values.pop(key, None)
            else:
                self._values[key] = value

    def update(self, values: Mapping[Condition | str, Any]) -> None:
        """Replace several facts at once; readers see all or none of them."""
        converted = {_to_condition(k): v for k, v in values.items()}
        with self._lock:
            for key, value in converted.items():
                if value is None:
                    self._values.pop(key, None)
                else:
                    self._values[key] = value

    def __repr__(self) -> str:
        names = sorted(c.value for c in self._values)
        return f"StaticConditionProvider({', '.join(names)})"


class PlatformConditionProvider:
    """
    Facts about the current Python host.

    deviceType is "desktop" unless given; app facts come from the caller.
    """

    def __init__(
        self,
        app_version: str | None = None,
        build_number: str | None = None,
        device_type: str = "desktop",
        device_generation: str | None = None,
    ):
        self._values: dict[Condition, Any] = {
            Condition.APP_VERSION: app_version,
            Condition.BUILD_NUMBER: build_number,
            Condition.DEVICE_GENERATION: device_generation,
            Condition.DEVICE_MODEL: platform.machine() or None,
            Condition.DEVICE_NAME: platform.node() or None,
            Condition.DEVICE_TYPE: device_type,
            Condition.OPERATING_SYSTEM: platform.system() or None,
            Condition.SYSTEM_VERSION: platform.release() or None,
        }

    def value_for(self, condition: Condition) -> Any:
        return self._values.get(condition)

    def snapshot(self) -> dict[Condition, Any]:
        return {k: v for k, v in self._values.items() if v is not None}
