"""
Feature toggles.

A toggle has a remote value (from the host's remote config), an optional A/B
expression, and a local override persisted through a key-value backend.

Resolution (Toggler.value):
1. Unknown toggle name -> False
2. Local overrides disabled -> remote value
3. A/B expression set -> engine.evaluate(expression)
4. Otherwise -> persisted local value (False when never set)

Toggle definitions can be loaded from YAML:

    toggles:
      - name: New Checkout
        remote_value: true
        ab_expression: "appVersion >= 2.0 && percentage <= 10"
      - name: Dark Mode
        remote_value: false
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .config.constants import TOGGLE_LOCAL_VALUE_PREFIX, TOGGLE_OVERRIDES_KEY
from .engine import RuleEngine
from .errors import ToggleConfigError
from .store.backends import KeyValueBackend
from .utils.logger import get_logger


def local_value_key(name: str) -> str:
    """
    Persistence key for a toggle's local override.

    "Secret Feature" -> "flagyard_toggler_local_value_secret_feature"
    """
    return TOGGLE_LOCAL_VALUE_PREFIX + name.lower().replace(" ", "_")


@dataclass(frozen=True)
class FeatureToggle:
    """A single named toggle."""

    name: str
    remote_value: bool = False
    ab_expression: str | None = None

    @property
    def local_key(self) -> str:
        return local_value_key(self.name)


class Toggler:
    """
    Registry of feature toggles bound to one engine and one backend.

    Args:
        engine: Engine used for A/B expressions
        backend: Persistence for local overrides (defaults to engine.backend)
    """

    def __init__(self, engine: RuleEngine, backend: KeyValueBackend | None = None):
        self.engine = engine
        self.backend = backend if backend is not None else engine.backend
        self._toggles: dict[str, FeatureToggle] = {}
        self._lock = threading.Lock()
        self.logger = get_logger()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def configure_toggle(
        self,
        name: str,
        remote_value: bool,
        ab_expression: str | None = None,
    ) -> FeatureToggle:
        """Register a toggle, replacing any previous toggle with the same name."""
        toggle = FeatureToggle(name=name, remote_value=remote_value, ab_expression=ab_expression)
        with self._lock:
            self._toggles[name] = toggle
        return toggle

    def configure_many(self, toggles: list[FeatureToggle]) -> None:
        with self._lock:
            for toggle in toggles:
                self._toggles[toggle.name] = toggle

    def get(self, name: str) -> FeatureToggle | None:
        with self._lock:
            return self._toggles.get(name)

    @property
    def toggles(self) -> list[FeatureToggle]:
        with self._lock:
            return list(self._toggles.values())

    # -------------------------------------------------------------------------
    # Local overrides
    # -------------------------------------------------------------------------

    @property
    def local_overrides_enabled(self) -> bool:
        return bool(self.backend.get(TOGGLE_OVERRIDES_KEY))

    @local_overrides_enabled.setter
    def local_overrides_enabled(self, enabled: bool) -> None:
        self.backend.set(TOGGLE_OVERRIDES_KEY, bool(enabled))

    def local_value(self, name: str) -> bool:
        """Persisted local value for a toggle (False if unknown or never set)."""
        toggle = self.get(name)
        if toggle is None:
            return False
        return bool(self.backend.get(toggle.local_key))

    def set_local_value(self, name: str, value: bool) -> None:
        """Persist a local override. Unknown toggle names are ignored."""
        toggle = self.get(name)
        if toggle is None:
            self.logger.warning(f"Cannot set local value: unknown toggle '{name}'")
            return
        self.backend.set(toggle.local_key, bool(value))

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def value(self, name: str) -> bool:
        """Effective value of a toggle."""
        toggle = self.get(name)
        if toggle is None:
            return False
        if not self.local_overrides_enabled:
            return toggle.remote_value
        if toggle.ab_expression is not None:
            return self.engine.evaluate(toggle.ab_expression)
        return bool(self.backend.get(toggle.local_key))

    def values(self) -> dict[str, bool]:
        """Effective value of every registered toggle."""
        return {t.name: self.value(t.name) for t in self.toggles}


# =============================================================================
# YAML loading
# =============================================================================

def _parse_toggle(entry: Any, index: int, path: str | None) -> FeatureToggle:
    where = f"toggles[{index}]"
    if not isinstance(entry, dict):
        raise ToggleConfigError(f"{where} must be a mapping", path)

    unknown = set(entry) - {"name", "remote_value", "ab_expression"}
    if unknown:
        raise ToggleConfigError(
            f"{where} has unknown keys: {', '.join(sorted(map(str, unknown)))}", path
        )

    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ToggleConfigError(f"{where}.name must be a non-empty string", path)

    remote_value = entry.get("remote_value", False)
    if not isinstance(remote_value, bool):
        raise ToggleConfigError(f"{where}.remote_value must be a boolean", path)

    ab_expression = entry.get("ab_expression")
    if ab_expression is not None and not isinstance(ab_expression, str):
        raise ToggleConfigError(f"{where}.ab_expression must be a string", path)

    return FeatureToggle(name=name.strip(), remote_value=remote_value, ab_expression=ab_expression)


def parse_toggles(raw: Any, path: str | None = None) -> list[FeatureToggle]:
    """
    Validate a loaded YAML document and build toggles.

    Raises:
        ToggleConfigError: On any structural problem or duplicate name
    """
    if not isinstance(raw, dict) or "toggles" not in raw:
        raise ToggleConfigError("document must be a mapping with a 'toggles' list", path)
    entries = raw["toggles"]
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ToggleConfigError("'toggles' must be a list", path)

    toggles: list[FeatureToggle] = []
    seen: set[str] = set()
    for i, entry in enumerate(entries):
        toggle = _parse_toggle(entry, i, path)
        if toggle.name in seen:
            raise ToggleConfigError(f"duplicate toggle name '{toggle.name}'", path)
        seen.add(toggle.name)
        toggles.append(toggle)
    return toggles


def load_toggles(path: str | Path) -> list[FeatureToggle]:
    """
    Load toggle definitions from a YAML file.

    Raises:
        ToggleConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ToggleConfigError("file not found", str(path))
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ToggleConfigError(f"invalid YAML: {e}", str(path)) from e
    return parse_toggles(raw, str(path))
