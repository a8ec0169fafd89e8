"""Central logger configuration.

Why this exists:
- Consistent formatting across all modules
- One place to tune log level/handlers
- Easier debugging for webhook + background pipeline runs
"""

import logging
import sys

_MANAGED_LOGGERS: set[str] = set()
_LEVEL = logging.INFO


def setup_logger(name: str = "phone_journal") -> logging.Logger:
    """Create and return a configured logger.

    NOTE:
    - Keep this simple; avoid hidden global state beyond the level.
    - Every module should do: `logger = setup_logger(__name__)`.
    """
    logger = logging.getLogger(name)

    # Prevent duplicate handlers in reload environments (uvicorn --reload)
    if logger.handlers:
        return logger

    logger.setLevel(_LEVEL)

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Avoid propagating to root and double-printing
    logger.propagate = False
    _MANAGED_LOGGERS.add(name)
    return logger


def set_log_level(level: str | int) -> None:
    """Apply APP_LOG_LEVEL to every logger created through setup_logger."""
    global _LEVEL

    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    _LEVEL = level
    for name in _MANAGED_LOGGERS:
        logging.getLogger(name).setLevel(level)
