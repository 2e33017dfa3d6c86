"""Logging setup for the ox command line.

Every ordex module logs through ``logging.getLogger(__name__)``, so all
records land under the ``ordex`` logger, which owns a single stderr handler.
Stdout stays reserved for command output (``--json`` payloads, generated
links, fingerprints) and can be piped safely.

What each level carries:
    - DEBUG: every planned and performed rename, staging names, skipped
      duplicate fingerprints
    - INFO: one summary line per batch (renumber-all, repair, orphans)
    - WARNING: skipped directories, missing link targets, failed orphan
      renames
    - ERROR: an operation that was rolled back or refused

ORDEX_LOG_LEVEL picks the level; ``--quiet`` lowers output to errors only.
"""

import logging
import os
import sys

PACKAGE_LOGGER = "ordex"
LOG_LEVEL_ENV = "ORDEX_LOG_LEVEL"


def _level_from_env() -> tuple[int, str | None]:
    """Resolve ORDEX_LOG_LEVEL to a level, plus the raw value if it was unknown."""
    raw = os.environ.get(LOG_LEVEL_ENV, "INFO").strip().upper()
    level = logging.getLevelName(raw)
    if isinstance(level, int):
        return level, None
    return logging.INFO, raw


def configure_logging() -> None:
    """Attach the stderr handler to the ordex logger. Safe to call twice."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if package_logger.handlers:
        return

    level, unknown = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    handler.setLevel(level)

    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    if unknown:
        package_logger.warning("Unknown %s %r, using INFO", LOG_LEVEL_ENV, unknown)


def set_quiet_mode(quiet: bool) -> None:
    """Show only errors when quiet; otherwise go back to the configured level."""
    level = logging.ERROR if quiet else _level_from_env()[0]
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    for handler in package_logger.handlers:
        handler.setLevel(level)
