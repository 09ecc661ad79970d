"""Logging setup for the ``agent_flag`` namespace.

Usage:
    from agent_flag.obs.logging import get_logger
    logger = get_logger("agent_flag.stages.intent")
    logger.info("[INTENT] model=%s", config.model)
"""

from __future__ import annotations

import logging
import sys

_ROOT = "agent_flag"
_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_configured = False


def setup_logging(level: int | str = logging.INFO) -> None:
    """Attach a single stderr handler to the package root logger.

    Later calls only adjust the level, so entry points can apply
    ``LOG_LEVEL`` after modules have already requested their loggers.
    """
    global _configured
    if isinstance(level, str):
        level = _LEVELS.get(level.lower(), logging.INFO)

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    if _configured:
        for handler in root.handlers:
            handler.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``agent_flag`` namespace."""
    if not _configured:
        setup_logging()
    return logging.getLogger(name)
