"""Centralized logging setup for the DTR intake system.

Every module logs through a named standard-library logger; the root
handler is installed once by the API server or the CLI.
"""

import logging
import sys

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Install a stdout handler on the root logger.

    Calling this more than once is a no-op, so the CLI and the API
    server can both call it safely.

    Args:
        level: Logging level name. Unknown names fall back to INFO.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (usually the caller's ``__name__``)."""
    return logging.getLogger(name)
