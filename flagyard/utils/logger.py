"""
Logging system for flagyard.
Provides human-readable console logs and optional daily file logs.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional


# ANSI color codes for terminal output
class Colors:
    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    BOLD = "\033[1m"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        # Work on a copy so file handlers never see color codes
        record = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        record.levelname = f"{color}{record.levelname}{Colors.RESET}"
        record.msg = f"{color}{record.msg}{Colors.RESET}"
        return super().format(record)


class FlagLogger:
    """
    Central logging system for flagyard.

    Features:
    - Console output with colors
    - Optional file output (one file per day) when a log directory is set
    - Separate `flagyard.eval` logger for evaluation traces
    """

    _instance: Optional['FlagLogger'] = None
    _initialized: bool = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_dir: str | None = None, log_level: str = "INFO"):
        if FlagLogger._initialized:
            return

        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self.main_logger = self._create_logger("flagyard", log_level)
        self.eval_logger = self._create_logger("flagyard.eval", log_level, "evaluations")

        FlagLogger._initialized = True

    def _create_logger(self, name: str, level: str, file_prefix: str = None) -> logging.Logger:
        """Create a configured logger instance."""
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level.upper()))
        logger.handlers.clear()

        # Child loggers reach the console through "flagyard"
        if "." not in name:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(ColoredFormatter(
                "%(asctime)s | %(levelname)s | %(message)s",
                datefmt="%H:%M:%S"
            ))
            logger.addHandler(console_handler)

        if self.log_dir is not None:
            prefix = file_prefix or "flagyard"
            log_file = self.log_dir / f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            logger.addHandler(file_handler)

        return logger

    def info(self, msg: str, *args, **kwargs):
        """Log info message."""
        self.main_logger.info(msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        """Log debug message."""
        self.main_logger.debug(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        """Log warning message."""
        self.main_logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        """Log error message."""
        self.main_logger.error(msg, *args, **kwargs)

    def trace(self, lines: list[str]):
        """
        Log an evaluation trace at DEBUG on the eval logger.

        Args:
            lines: Output of EvaluationTrace.format_lines()
        """
        if not self.eval_logger.isEnabledFor(logging.DEBUG):
            return
        for line in lines:
            self.eval_logger.debug(line)

    def cohort(self, action: str, key: str, value: float, **kwargs):
        """
        Log a cohort store action with structured format.

        Args:
            action: CREATED, LOADED, REPLACED
            key: Persistence key
            value: Cohort percentage
            **kwargs: Additional fields
        """
        parts = [f"[COHORT:{action}]", f"key={key}", f"value={value:.4f}"]
        for k, v in kwargs.items():
            parts.append(f"{k}={v}")

        msg = " | ".join(parts)
        if action == "REPLACED":
            self.main_logger.warning(msg)
        else:
            self.main_logger.info(msg)


# Global logger instance
_logger: Optional[FlagLogger] = None


def get_logger(log_dir: str | None = None, log_level: str = "INFO") -> FlagLogger:
    """Get or create the global logger instance."""
    global _logger
    if _logger is None:
        _logger = FlagLogger(log_dir, log_level)
    return _logger


def setup_logger(log_dir: str | None = None, log_level: str = "INFO") -> FlagLogger:
    """Initialize the logger with custom settings (replaces any previous setup)."""
    global _logger
    FlagLogger._initialized = False
    FlagLogger._instance = None
    _logger = FlagLogger(log_dir, log_level)
    return _logger
