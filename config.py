"""Configuration management for climark."""

import os

from utils.runtime import get_config_file, get_runtime_dir

_ENV_PREFIX = "CLIMARK_"

# Default configuration template
_DEFAULT_CONFIG = """\
# climark configuration
# Values here are overridden by CLIMARK_<KEY> environment variables,
# which are overridden by command line flags.

# Program repositories, separated by the OS path separator (":" on Unix).
# When empty, ~/.climark/programs/ is used if it exists.
REPOSITORIES=

# Comma-separated doublestar globs selecting documents in directory mode
GLOB=**/*.tmpl.md

# Left and right template delimiters, separated by ","
DELIMITERS={{,}}

WITH_GO_TEMPLATE=true
WITH_YAML_MARKERS=true
ALLOW_PROGRAM_CREATION=false

# Number of files rendered concurrently in directory mode
RENDER_JOBS=1

# Seconds before a program is killed (0 disables the limit)
PROGRAM_TIMEOUT=0

# Seconds between filesystem polls in watch mode
WATCH_INTERVAL=0.5

LOG_LEVEL=DEBUG
THEME=dark
"""


def _load_config(path: str) -> dict[str, str]:
    """Parse a KEY=VALUE config file, skipping comments and blank lines."""
    cfg: dict[str, str] = {}
    if not os.path.isfile(path):
        return cfg
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            # Strip inline comments (" # ...") from the value
            if " #" in value:
                value = value[: value.index(" #")]
            cfg[key.strip()] = value.strip()
    return cfg


def _get(cfg: dict[str, str], key: str, default: str) -> str:
    return os.environ.get(_ENV_PREFIX + key, cfg.get(key, default))


def _get_bool(cfg: dict[str, str], key: str, default: bool) -> bool:
    return _get(cfg, key, "true" if default else "false").lower() in ("1", "true", "yes", "on")


def _split(value: str, sep: str) -> list[str]:
    return [item.strip() for item in value.split(sep) if item.strip()]


def ensure_config() -> None:
    """Ensure ~/.climark/config exists, create with defaults if not."""
    path = get_config_file()
    if not os.path.exists(path):
        os.makedirs(get_runtime_dir(), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(_DEFAULT_CONFIG)


_cfg = _load_config(get_config_file())


class Config:
    """Configuration for climark.

    All configuration is centralized here. Access config values directly via Config.XXX.
    """

    # Repositories searched for program definitions
    REPOSITORIES = _split(_get(_cfg, "REPOSITORIES", ""), os.pathsep)

    # Rendering defaults
    GLOB = _split(_get(_cfg, "GLOB", "**/*.tmpl.md"), ",")
    DELIMITERS = [d.strip() for d in _get(_cfg, "DELIMITERS", "{{,}}").split(",")]
    WITH_GO_TEMPLATE = _get_bool(_cfg, "WITH_GO_TEMPLATE", True)
    WITH_YAML_MARKERS = _get_bool(_cfg, "WITH_YAML_MARKERS", True)
    ALLOW_PROGRAM_CREATION = _get_bool(_cfg, "ALLOW_PROGRAM_CREATION", False)
    RENDER_JOBS = int(_get(_cfg, "RENDER_JOBS", "1"))

    # Execution
    PROGRAM_TIMEOUT = float(_get(_cfg, "PROGRAM_TIMEOUT", "0"))

    # Watch mode
    WATCH_INTERVAL = float(_get(_cfg, "WATCH_INTERVAL", "0.5"))

    # Logging Configuration
    # Note: Logging is controlled via --verbose flag, files go to ~/.climark/logs/
    LOG_LEVEL = _get(_cfg, "LOG_LEVEL", "DEBUG").upper()

    # Terminal output
    THEME = _get(_cfg, "THEME", "dark")  # "dark" or "light"

    @classmethod
    def program_timeout(cls) -> float | None:
        """Timeout applied to each program run, or None for no limit."""
        return cls.PROGRAM_TIMEOUT if cls.PROGRAM_TIMEOUT > 0 else None

    @classmethod
    def validate(cls):
        """Validate configuration values.

        Raises:
            ValueError: If a value is out of range
        """
        if len(cls.DELIMITERS) != 2 or not all(cls.DELIMITERS):
            raise ValueError(
                "DELIMITERS must contain a left and a right delimiter separated by ','.\n"
                "Example: DELIMITERS={{,}}"
            )
        if cls.RENDER_JOBS < 1:
            raise ValueError("RENDER_JOBS must be at least 1.")
        if cls.WATCH_INTERVAL <= 0:
            raise ValueError("WATCH_INTERVAL must be positive.")
