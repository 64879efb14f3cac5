"""Utility modules for climark."""

from .logger import get_log_file_path, get_logger, setup_logger

# Note: terminal_ui and runtime are NOT exported here; terminal_ui imports
# config, which must stay importable without the rest of utils.
#   from utils import terminal_ui
#   from utils.runtime import get_config_file, get_log_dir

__all__ = [
    "setup_logger",
    "get_logger",
    "get_log_file_path",
]
