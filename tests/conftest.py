"""
Pytest configuration for flagyard tests.
"""

import numpy as np
import pytest

from flagyard.config.config import load_config, reset_config
from flagyard.engine import RuleEngine
from flagyard.providers import StaticConditionProvider
from flagyard.store.backends import MemoryBackend

ENV_VARS = (
    "FLAGYARD_COHORT_KEY",
    "FLAGYARD_STORE_BACKEND",
    "FLAGYARD_STORE_PATH",
    "FLAGYARD_PROGRAM_CACHE_SIZE",
    "FLAGYARD_LOG_LEVEL",
    "FLAGYARD_LOG_DIR",
    "FLAGYARD_TRACE_EVALUATIONS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Every test starts from default configuration."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    """Fresh default config (no .env file)."""
    return load_config(None)


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator for reproducible cohort draws."""
    return np.random.default_rng(1234)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def provider() -> StaticConditionProvider:
    """Provider with a typical phone install."""
    return StaticConditionProvider(
        appVersion="2.5",
        buildNumber="150",
        deviceType="phone",
        deviceGeneration="12.1",
        operatingSystem="iOS",
        systemVersion="17.4",
    )


@pytest.fixture
def engine(provider, backend, config, rng) -> RuleEngine:
    """Engine over the typical provider with in-memory persistence."""
    return RuleEngine(provider, backend=backend, config=config, rng=rng)


@pytest.fixture
def make_engine(config, rng):
    """Factory: engine over a StaticConditionProvider built from keyword facts."""
    def _make(backend=None, **facts) -> RuleEngine:
        return RuleEngine(
            StaticConditionProvider(facts),
            backend=backend if backend is not None else MemoryBackend(),
            config=config,
            rng=rng,
        )
    return _make
