"""
Utility modules.
"""

from .logger import get_logger, setup_logger, FlagLogger

__all__ = [
    "get_logger",
    "setup_logger",
    "FlagLogger",
]
