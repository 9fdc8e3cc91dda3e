"""
Cohort percentage store.

Each install gets one random percentage in [0, 100), drawn on first access and
persisted under a stable key. Rollout rules such as `percentage <= 10` bucket
installs against it, so the value must never change once stored.

First access is atomic: an instance lock serializes callers in this store and
the backend's setdefault() decides the winner between stores sharing a backend.
Replacing a corrupt value goes through the backend's replace_if(), so the
first repair wins and every other caller adopts the value it stored.
"""

from __future__ import annotations

import math
import threading
from typing import Any

import numpy as np

from ..config.constants import COHORT_MAX, COHORT_MIN, DEFAULT_COHORT_KEY
from ..errors import StoreError
from ..utils.logger import get_logger
from .backends import KeyValueBackend, MemoryBackend

_REPLACE_ATTEMPTS = 3


def validate_cohort_value(value: Any) -> float | None:
    """Return value as a float if it is a finite number in [0, 100), else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    if not (COHORT_MIN <= value < COHORT_MAX):
        return None
    return value


class CohortPercentageStore:
    """
    Per-install cohort percentages, one per key.

    Args:
        backend: Persistence backend (defaults to an in-memory one)
        rng: numpy Generator used for draws (seed it for reproducible tests)
    """

    def __init__(
        self,
        backend: KeyValueBackend | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.backend = backend if backend is not None else MemoryBackend()
        self._rng = rng if rng is not None else np.random.default_rng()
        self._lock = threading.Lock()
        self._cache: dict[str, float] = {}
        self.logger = get_logger()

    def _draw(self) -> float:
        value = float(self._rng.uniform(COHORT_MIN, COHORT_MAX))
        # Generator.uniform may round up to the open bound
        if value >= COHORT_MAX:
            value = float(np.nextafter(COHORT_MAX, COHORT_MIN))
        return value

    def cohort_percentage(self, key: str = DEFAULT_COHORT_KEY) -> float:
        """
        Get the cohort percentage for a key, creating it on first access.

        A stored value that is not a finite number in [0, 100) is replaced
        through replace_if(), so concurrent repairers agree on one value.

        Returns:
            Float in [0, 100), identical on every call for the same key

        Raises:
            StoreError: If the backend cannot be read or written, or the
                value keeps changing underneath every replacement attempt
        """
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

            stored = self.backend.get(key)
            action = "LOADED"
            if stored is None:
                candidate = self._draw()
                stored = self.backend.setdefault(key, candidate)
                action = "CREATED" if stored == candidate else "LOADED"

            attempts = 0
            value = validate_cohort_value(stored)
            while value is None:
                if attempts == _REPLACE_ATTEMPTS:
                    raise StoreError(
                        f"Cohort value for '{key}' is still invalid after "
                        f"{_REPLACE_ATTEMPTS} replacement attempts: {stored!r}"
                    )
                attempts += 1
                candidate = self._draw()
                current = self.backend.replace_if(key, stored, candidate)
                if current == candidate:
                    self.logger.cohort("REPLACED", key, candidate, previous=repr(stored))
                    action = None
                stored = current
                value = validate_cohort_value(stored)

            if action is not None:
                self.logger.cohort(action, key, value)

            self._cache[key] = value
            return value

    def peek(self, key: str = DEFAULT_COHORT_KEY) -> float | None:
        """Return the persisted percentage without creating one."""
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        return validate_cohort_value(self.backend.get(key))
