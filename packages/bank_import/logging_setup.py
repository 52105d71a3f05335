"""Logging for the ``bank_import`` package.

Entrypoints (the CLI, a host web app) call ``configure_logging()`` once at
startup; it attaches one ``StreamHandler`` to the ``"bank_import"`` logger.
Library modules never attach handlers themselves: they call
``get_logger("bank_import.<module>")`` and inherit whatever the host set up.

Level resolution: explicit argument, then ``BANK_IMPORT_LOG_LEVEL``, then
``INFO``. The format can be overridden with ``BANK_IMPORT_LOG_FORMAT``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "bank_import"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("BANK_IMPORT_LOG_LEVEL")
    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach the package handler once; later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    # NullHandlers added by get_logger() before configuration would mask output.
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or os.getenv("BANK_IMPORT_LOG_FORMAT") or _DEFAULT_FORMAT)
    )

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``, silent until the host configures it."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
