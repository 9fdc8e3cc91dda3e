"""
Centralized constants for flagyard.

Persistence keys are part of the on-disk contract: changing one re-buckets
every install (cohort key) or drops every local override (toggle keys).
"""

from typing import Literal


# ==================== Persistence Keys ====================

DEFAULT_COHORT_KEY = "flagyard_ab_testing_percentage_value"

TOGGLE_LOCAL_VALUE_PREFIX = "flagyard_toggler_local_value_"
TOGGLE_OVERRIDES_KEY = "flagyard_toggler_local_overrides_enabled"


# ==================== Cohort Range ====================

COHORT_MIN = 0.0
COHORT_MAX = 100.0  # exclusive


# ==================== Store Backends ====================

StoreBackendName = Literal["memory", "json", "duckdb"]
STORE_BACKENDS: tuple[str, ...] = ("memory", "json", "duckdb")
DEFAULT_STORE_BACKEND: StoreBackendName = "memory"
DEFAULT_STORE_PATH = "data/flagyard_store.json"
DEFAULT_DUCKDB_TABLE = "kv_store"


def validate_store_backend(name: str) -> StoreBackendName:
    """
    Validate and normalize a store backend name.

    Args:
        name: Backend name (case-insensitive)

    Returns:
        Normalized backend name

    Raises:
        ValueError: If the name is not a known backend
    """
    normalized = (name or "").strip().lower()
    if normalized not in STORE_BACKENDS:
        raise ValueError(
            f"Unknown store backend '{name}'. Expected one of: {', '.join(STORE_BACKENDS)}"
        )
    return normalized  # type: ignore[return-value]


# ==================== Evaluation ====================

DEFAULT_PROGRAM_CACHE_SIZE = 256

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
