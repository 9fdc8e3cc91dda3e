"""
flagyard - embeddable rule engine for feature flags and percentage rollouts.

Evaluates expressions such as `deviceType == tablet && appVersion >= 2.0`
against runtime facts supplied by the host application.
"""

from .engine import RuleEngine
from .errors import ConfigError, FlagyardError, StoreError, ToggleConfigError
from .providers import PlatformConditionProvider, StaticConditionProvider
from .rules import Condition, EvaluationTrace, OperatorKind, ReasonCode
from .store import (
    CohortPercentageStore,
    DuckDBBackend,
    JsonFileBackend,
    MemoryBackend,
)
from .toggles import FeatureToggle, Toggler, load_toggles

__version__ = "0.1.0"

__all__ = [
    "RuleEngine",
    "Condition",
    "OperatorKind",
    "ReasonCode",
    "EvaluationTrace",
    "StaticConditionProvider",
    "PlatformConditionProvider",
    "CohortPercentageStore",
    "MemoryBackend",
    "JsonFileBackend",
    "DuckDBBackend",
    "FeatureToggle",
    "Toggler",
    "load_toggles",
    "FlagyardError",
    "ConfigError",
    "StoreError",
    "ToggleConfigError",
]
