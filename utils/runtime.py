"""Runtime directory management for climark.

All runtime data is stored under ~/.climark/ directory:
- config: Configuration file (created by the CLI on first run)
- programs/: Fallback program repository used when none is configured
- logs/: Log files (only created with --verbose)
"""

import os

RUNTIME_DIR = os.path.join(os.path.expanduser("~"), ".climark")


def get_runtime_dir() -> str:
    return RUNTIME_DIR


def get_config_file() -> str:
    return os.path.join(RUNTIME_DIR, "config")


def get_programs_dir() -> str:
    """Get the fallback program repository path.

    Returns:
        Path to ~/.climark/programs/
    """
    return os.path.join(RUNTIME_DIR, "programs")


def get_log_dir() -> str:
    return os.path.join(RUNTIME_DIR, "logs")


def default_repositories() -> list[str]:
    """Repositories used when neither --repository nor REPOSITORIES is set.

    Returns:
        [~/.climark/programs] if that directory exists, else an empty list
    """
    programs = get_programs_dir()
    return [programs] if os.path.isdir(programs) else []


def ensure_runtime_dirs(create_logs: bool = False) -> None:
    """Ensure runtime directories exist.

    Args:
        create_logs: Whether to create the logs directory (for --verbose mode)
    """
    os.makedirs(RUNTIME_DIR, exist_ok=True)

    if create_logs:
        os.makedirs(get_log_dir(), exist_ok=True)
