"""
Logging for the coderecall package.

Every module logs through ``get_logger(__name__)``, which places it under the
``coderecall`` logger. That logger owns the one stream handler, so the root
logger and third-party loggers (uvicorn, httpx, openai) keep their own
configuration. ``CODERECALL_LOG_LEVEL`` sets the level for the whole tree.
"""

from __future__ import annotations

import logging
import os
from typing import Final

PACKAGE_LOGGER: Final[str] = "coderecall"
_FORMAT: Final[str] = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def _resolve_level() -> int:
    level_name = os.getenv("CODERECALL_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def configure_package_logger() -> logging.Logger:
    """Attach the stream handler to the ``coderecall`` logger once and refresh its level."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not any(getattr(h, "_coderecall", False) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler._coderecall = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)
        package_logger.propagate = False
    package_logger.setLevel(_resolve_level())
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger inside the ``coderecall`` tree.

    Names outside the package (``__main__``, scripts) are nested under it so
    they share the handler instead of falling through to the root logger.
    """
    configure_package_logger()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
