"""Logging setup shared by the API, the CLI and the provider chain.

Provider backends run in worker threads, so every record carries the
thread name next to the logger name.
"""

import logging
import sys

_FORMAT = "%(asctime)s [%(threadName)s] %(name)s %(levelname)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP and imaging libraries that log every request or decode at INFO/DEBUG.
_NOISY_LOGGERS = ("urllib3", "azure", "PIL")


def resolve_level(level: str | int) -> int:
    """Map a level name or number to a logging level; unknown names give INFO."""
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.INFO


def setup_logging(level: str | int = "INFO") -> None:
    """Install one stdout handler on the root logger.

    Calling it again once a handler exists is a no-op, so the API, the
    CLI and the tests can all call it.

    Args:
        level: Level name (``DEBUG``, ``INFO``...) or number.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    numeric_level = resolve_level(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return the module logger for ``name`` (usually ``__name__``)."""
    return logging.getLogger(name)
