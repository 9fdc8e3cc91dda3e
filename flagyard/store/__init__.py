"""
Persistence: key-value backends and the cohort percentage store.
"""

from .backends import (
    KeyValueBackend,
    MemoryBackend,
    JsonFileBackend,
    DuckDBBackend,
    create_backend,
)
from .cohort import CohortPercentageStore, validate_cohort_value

__all__ = [
    "KeyValueBackend",
    "MemoryBackend",
    "JsonFileBackend",
    "DuckDBBackend",
    "create_backend",
    "CohortPercentageStore",
    "validate_cohort_value",
]
