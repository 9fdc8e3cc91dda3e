"""
Configuration management for flagyard.
Loads settings from environment variables (and .env files) with sensible defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from ..errors import ConfigError
from .constants import (
    DEFAULT_COHORT_KEY,
    DEFAULT_PROGRAM_CACHE_SIZE,
    DEFAULT_STORE_BACKEND,
    DEFAULT_STORE_PATH,
    LOG_LEVELS,
    StoreBackendName,
    validate_store_backend,
)


@dataclass
class StoreConfig:
    """
    Persistence configuration for the cohort store and toggle overrides.

    backend:
        memory - values live for the process only (tests, previews)
        json   - one JSON object in `path`, rewritten atomically
        duckdb - `kv_store` table in the DuckDB database at `path`
    """
    backend: StoreBackendName = DEFAULT_STORE_BACKEND
    path: str = DEFAULT_STORE_PATH
    cohort_key: str = DEFAULT_COHORT_KEY


@dataclass
class EvalConfig:
    """Evaluation configuration."""
    program_cache_size: int = DEFAULT_PROGRAM_CACHE_SIZE  # 0 disables the postfix cache
    trace_evaluations: bool = False  # Log every evaluation trace at DEBUG


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_dir: str = ""  # Empty: console only


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "y", "on"):
        return True
    if value in ("0", "false", "no", "n", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got '{raw}'")


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


class Config:
    """
    Central configuration.

    Loads configuration from environment variables and provides typed access
    to all settings. Construct directly for an isolated config; use
    get_config() for the shared process-wide instance.
    """

    def __init__(self, env_file: Optional[str] = ".env"):
        if env_file:
            env_path = Path(env_file)
            if env_path.exists():
                load_dotenv(env_path, override=True)

        self.store = self._load_store_config()
        self.eval = self._load_eval_config()
        self.log = self._load_log_config()

    def _load_store_config(self) -> StoreConfig:
        """Load persistence configuration from environment."""
        try:
            backend = validate_store_backend(
                os.getenv("FLAGYARD_STORE_BACKEND", DEFAULT_STORE_BACKEND)
            )
        except ValueError as e:
            raise ConfigError(str(e)) from None

        cohort_key = os.getenv("FLAGYARD_COHORT_KEY", DEFAULT_COHORT_KEY).strip()
        if not cohort_key:
            raise ConfigError("FLAGYARD_COHORT_KEY must not be empty")

        return StoreConfig(
            backend=backend,
            path=os.getenv("FLAGYARD_STORE_PATH", DEFAULT_STORE_PATH),
            cohort_key=cohort_key,
        )

    def _load_eval_config(self) -> EvalConfig:
        """Load evaluation configuration from environment."""
        return EvalConfig(
            program_cache_size=_env_int(
                "FLAGYARD_PROGRAM_CACHE_SIZE", DEFAULT_PROGRAM_CACHE_SIZE
            ),
            trace_evaluations=_env_bool("FLAGYARD_TRACE_EVALUATIONS", False),
        )

    def _load_log_config(self) -> LogConfig:
        """Load logging configuration from environment."""
        level = os.getenv("FLAGYARD_LOG_LEVEL", "INFO").strip().upper()
        if level not in LOG_LEVELS:
            raise ConfigError(
                f"FLAGYARD_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got '{level}'"
            )
        return LogConfig(
            level=level,
            log_dir=os.getenv("FLAGYARD_LOG_DIR", ""),
        )

    def summary(self) -> dict:
        """Flat view of the effective configuration (for CLI display)."""
        return {
            "store.backend": self.store.backend,
            "store.path": self.store.path,
            "store.cohort_key": self.store.cohort_key,
            "eval.program_cache_size": self.eval.program_cache_size,
            "eval.trace_evaluations": self.eval.trace_evaluations,
            "log.level": self.log.level,
            "log.log_dir": self.log.log_dir or "<console only>",
        }


# Global config instance
_config: Optional[Config] = None


def get_config(env_file: str = ".env") -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config(env_file)
    return _config


def load_config(env_file: Optional[str] = None) -> Config:
    """Build a fresh config from the current environment (no caching)."""
    return Config(env_file)


def reset_config() -> None:
    """Drop the cached global config (next get_config() reloads)."""
    global _config
    _config = None
