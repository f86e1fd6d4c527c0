"""Logging for the ``spend_pulse`` package.

Modules log through ``get_logger("spend_pulse.<module>")`` and never attach
handlers of their own. The CLI calls :func:`configure_logging` once at
startup; until then records reach only a ``NullHandler``.

``SPEND_PULSE_LOG_LEVEL`` picks the level by name (``DEBUG``, ``warning``);
an unset or unknown name means INFO. Output goes to stderr so that stdout
stays reserved for JSON, and a scheduled sync's stderr lands in its log file.
"""

from __future__ import annotations

import logging
import os

_PKG_LOGGER_NAME = "spend_pulse"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_CONFIGURED = False


def _env_level() -> int:
    name = os.getenv("SPEND_PULSE_LOG_LEVEL", "").strip().upper()
    if not name:
        return logging.INFO
    level = logging.getLevelName(name)
    # getLevelName returns "Level X" for names it does not know.
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """Attach one stderr handler to the package logger; later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(_env_level())
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
