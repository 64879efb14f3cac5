"""Logging configuration for climark."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .runtime import get_log_dir

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_handlers: list[logging.Handler] = []
_log_file_path: Optional[str] = None


def setup_logger(
    log_dir: Optional[str] = None,
    log_level: Optional[str] = None,
    log_to_console: bool = False,
) -> Optional[str]:
    """Configure the logging system globally.

    Called once by the CLI when --verbose is given. Each run writes its
    own timestamped file under ~/.climark/logs/. Without it, records go
    nowhere.

    Args:
        log_dir: Directory to store log files (default: ~/.climark/logs/)
        log_level: Logging level name (default: Config.LOG_LEVEL)
        log_to_console: Also echo warnings and errors to stderr

    Returns:
        Path of the log file
    """
    global _log_file_path

    if _handlers:
        return _log_file_path

    if log_dir is None:
        log_dir = get_log_dir()

    if log_level is None:
        from config import Config

        log_level = Config.LOG_LEVEL

    level = getattr(logging, log_level.upper(), logging.DEBUG)
    logging.root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_path = Path(log_dir)
    log_path.mkdir(exist_ok=True, parents=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_path / f"climark_{timestamp}.log"
    _log_file_path = str(log_file)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    _handlers.append(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        _handlers.append(console_handler)

    for handler in _handlers:
        logging.root.addHandler(handler)

    logging.info(f"Logging initialized. Level: {log_level}, File: {_log_file_path}")
    return _log_file_path


def reset_logger() -> None:
    """Detach and close the handlers installed by setup_logger (for tests)."""
    global _log_file_path

    for handler in _handlers:
        logging.root.removeHandler(handler)
        handler.close()
    _handlers.clear()
    _log_file_path = None


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def get_log_file_path() -> Optional[str]:
    """Get the path to the current log file, or None if logging is off."""
    return _log_file_path
