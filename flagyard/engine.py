"""
Rule engine facade.

Composes tokenizer, shunting-yard converter, postfix evaluator and cohort
store behind a small API:

    engine = RuleEngine(StaticConditionProvider(appVersion="2.5"))
    engine.evaluate("appVersion >= 2.0")          # True
    engine.explain("appVersion >= 2.0").steps     # per-operator EvalResults
    engine.value_for(Condition.APP_VERSION)       # "2.5"
    engine.cohort_percentage()                    # stable float in [0, 100)

Each engine owns its provider, persistence backend and program cache; nothing
is process-global. evaluate() never raises.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any

import numpy as np

from .config.config import Config, get_config
from .errors import StoreError
from .rules.postfix_eval import evaluate_postfix, referenced_conditions
from .rules.protocols import ConditionValueProvider, SnapshotConditionProvider
from .rules.registry import Condition
from .rules.shunting_yard import PostfixProgram, to_postfix
from .rules.tokenizer import tokenize
from .rules.types import EvaluationTrace, ReasonCode
from .store.backends import KeyValueBackend, create_backend
from .store.cohort import CohortPercentageStore
from .utils.logger import get_logger


class RuleEngine:
    """
    Evaluates flag and rollout expressions against runtime facts.

    Args:
        provider: Source of condition values (None: every condition is absent)
        backend: Persistence for the cohort percentage (default from config)
        config: Configuration (default: get_config())
        rng: numpy Generator for cohort draws
        cohort_key: Overrides config.store.cohort_key
    """

    def __init__(
        self,
        provider: ConditionValueProvider | None = None,
        backend: KeyValueBackend | None = None,
        config: Config | None = None,
        rng: np.random.Generator | None = None,
        cohort_key: str | None = None,
    ):
        self.config = config if config is not None else get_config()
        self.provider = provider
        self.backend = backend if backend is not None else create_backend(self.config.store)
        self.cohort_key = cohort_key or self.config.store.cohort_key
        self.cohort_store = CohortPercentageStore(self.backend, rng=rng)
        self.logger = get_logger()

        self._cache_size = self.config.eval.program_cache_size
        self._programs: OrderedDict[str, PostfixProgram] = OrderedDict()
        self._cache_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Compilation
    # -------------------------------------------------------------------------

    def compile(self, expression: str | None) -> PostfixProgram:
        """Tokenize and convert an expression, using the program cache."""
        key = expression or ""
        if self._cache_size <= 0:
            return to_postfix(tokenize(key))

        with self._cache_lock:
            program = self._programs.get(key)
            if program is not None:
                self._programs.move_to_end(key)
                return program

        program = to_postfix(tokenize(key))

        with self._cache_lock:
            self._programs[key] = program
            self._programs.move_to_end(key)
            while len(self._programs) > self._cache_size:
                self._programs.popitem(last=False)
        return program

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._programs.clear()

    # -------------------------------------------------------------------------
    # Condition resolution
    # -------------------------------------------------------------------------

    def _cohort_or_none(self) -> float | None:
        try:
            return self.cohort_store.cohort_percentage(self.cohort_key)
        except StoreError as e:
            self.logger.warning(f"Cohort percentage unavailable: {e}")
            return None

    def _provider_value(self, condition: Condition) -> Any:
        if self.provider is None:
            return None
        try:
            return self.provider.value_for(condition)
        except Exception as e:
            self.logger.warning(
                f"Provider failed for '{condition.value}': {type(e).__name__}: {e}"
            )
            return None

    def _snapshot(self, program: PostfixProgram) -> dict[Condition, Any]:
        """
        Resolve every condition the program references, once.

        Snapshot-capable providers are read through snapshot() so all values
        come from the same moment.
        """
        needed = referenced_conditions(program)
        values: dict[Condition, Any] = {}

        from_provider = needed - {Condition.PERCENTAGE}
        if from_provider and self.provider is not None:
            if isinstance(self.provider, SnapshotConditionProvider):
                try:
                    full = self.provider.snapshot()
                except Exception as e:
                    self.logger.warning(f"Provider snapshot failed: {type(e).__name__}: {e}")
                    full = {}
                for condition in from_provider:
                    values[condition] = full.get(condition)
            else:
                for condition in from_provider:
                    values[condition] = self._provider_value(condition)

        if Condition.PERCENTAGE in needed:
            values[Condition.PERCENTAGE] = self._cohort_or_none()

        return values

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def explain(self, expression: str | None) -> EvaluationTrace:
        """
        Evaluate an expression and return the full trace.

        Never raises: unexpected failures produce a False trace with
        ReasonCode.INTERNAL_ERROR.
        """
        source = expression or ""
        try:
            program = self.compile(source)
            trace = evaluate_postfix(program, self._snapshot(program), expression=source)
        except Exception as e:
            self.logger.error(
                f"Unexpected error evaluating {source!r}: {type(e).__name__}: {e}"
            )
            trace = EvaluationTrace(
                expression=source,
                postfix=[],
                result=False,
                reason=ReasonCode.INTERNAL_ERROR,
            )

        if self.config.eval.trace_evaluations:
            self.logger.trace(trace.format_lines())
        return trace

    def evaluate(self, expression: str | None) -> bool:
        """Evaluate an expression to a definite boolean (fail-closed)."""
        return self.explain(expression).result

    def value_for(self, condition: Condition | str) -> str | None:
        """
        Current textual value of a condition (inspection/debug helper).

        Unknown condition names and absent values return None.
        """
        if not isinstance(condition, Condition):
            condition = Condition.parse(condition)
            if condition is None:
                return None

        if condition == Condition.PERCENTAGE:
            value = self._cohort_or_none()
        else:
            value = self._provider_value(condition)
        return None if value is None else str(value)

    def cohort_percentage(self, key: str | None = None) -> float:
        """
        Stable per-install percentage in [0, 100) for a key.

        Raises:
            StoreError: If the persistence backend fails
        """
        return self.cohort_store.cohort_percentage(key or self.cohort_key)
