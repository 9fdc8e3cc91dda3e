"""
Exception types raised outside the evaluation path.

Rule evaluation itself never raises: every failure there resolves to False.
These errors cover configuration, toggle definitions and persistence, where
failing loudly is the correct behavior.
"""


class FlagyardError(Exception):
    """Base class for all flagyard errors."""


class ConfigError(FlagyardError):
    """Invalid configuration value (environment or .env file)."""


class ToggleConfigError(FlagyardError):
    """Invalid toggle definitions document."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class StoreError(FlagyardError):
    """Persistence backend could not be opened, read or written."""
