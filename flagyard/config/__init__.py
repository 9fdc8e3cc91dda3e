"""
Configuration management.
"""

from .config import (
    Config,
    StoreConfig,
    EvalConfig,
    LogConfig,
    get_config,
    load_config,
    reset_config,
)

from .constants import (
    DEFAULT_COHORT_KEY,
    TOGGLE_LOCAL_VALUE_PREFIX,
    TOGGLE_OVERRIDES_KEY,
    STORE_BACKENDS,
    DEFAULT_STORE_BACKEND,
    validate_store_backend,
)

__all__ = [
    # Config classes
    "Config",
    "StoreConfig",
    "EvalConfig",
    "LogConfig",
    "get_config",
    "load_config",
    "reset_config",
    # Constants
    "DEFAULT_COHORT_KEY",
    "TOGGLE_LOCAL_VALUE_PREFIX",
    "TOGGLE_OVERRIDES_KEY",
    "STORE_BACKENDS",
    "DEFAULT_STORE_BACKEND",
    "validate_store_backend",
]
