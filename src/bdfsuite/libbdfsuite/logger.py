"""
Thin wrapper around Python's ``logging`` module with bdfsuite-specific
log levels.  The integrator's integer ``verbose`` option maps onto these.

Usage
-----
>>> from bdfsuite.libbdfsuite.logger import get_logger
>>> log = get_logger(__name__)
>>> log.info("advance summary")          # verbose >= 1
>>> log.debug2("newton failure detail")  # custom level
"""

import logging
import sys

# ── Custom levels (below DEBUG=10) ──────────────────────────────────────
DEBUG2 = 9
DEBUG3 = 8

logging.addLevelName(DEBUG2, "DEBUG2")
logging.addLevelName(DEBUG3, "DEBUG3")

ROOT_NAME = "bdfsuite"


class _BdfLogger(logging.Logger):
    """Logger subclass that adds ``debug2`` and ``debug3`` convenience methods."""

    def debug2(self, msg, *args, **kwargs):
        if self.isEnabledFor(DEBUG2):
            self._log(DEBUG2, msg, args, **kwargs)

    def debug3(self, msg, *args, **kwargs):
        if self.isEnabledFor(DEBUG3):
            self._log(DEBUG3, msg, args, **kwargs)


# ── Mapping from integer verbosity levels to Python levels ──────────────
VERBOSE_LEVEL_MAP = {
    0: logging.WARNING,  # silent on success
    1: logging.INFO,  # one summary line per advance
    2: logging.DEBUG,  # one line per accepted step
    3: DEBUG2,  # rejections and Newton failures
    4: DEBUG3,  # Jacobian / factorization bookkeeping
}


def get_logger(name: str | None = None) -> _BdfLogger:
    """Return a logger under the ``bdfsuite`` hierarchy.

    The logger class is swapped only for the duration of the lookup so
    that importing bdfsuite does not change loggers created by other
    libraries.  A plain ``logging.Logger`` created under the same name
    beforehand (by ``logging.config.dictConfig``, say) is promoted in
    place so that ``debug2``/``debug3`` are always available.
    """
    old = logging.getLoggerClass()
    logging.setLoggerClass(_BdfLogger)
    try:
        log = logging.getLogger(name or ROOT_NAME)
    finally:
        logging.setLoggerClass(old)
    if type(log) is logging.Logger:
        log.__class__ = _BdfLogger
    return log


def set_level(level: int | str = logging.INFO) -> None:
    """Set the log level for *all* bdfsuite loggers at once.

    Accepts Python level names, or the integrator's ``verbose`` levels
    (0-4) which are translated through ``VERBOSE_LEVEL_MAP``.
    """
    if isinstance(level, int) and level in VERBOSE_LEVEL_MAP:
        level = VERBOSE_LEVEL_MAP[level]
    get_logger(ROOT_NAME).setLevel(level)


def setup(level: int | str = logging.INFO, stream=None) -> None:
    """One-time setup: attach a stderr handler with the bdfsuite format.

    Safe to call multiple times; extra calls only update the level.
    """
    root = get_logger(ROOT_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)-7s: %(message)s"))
        root.addHandler(handler)
    set_level(level)
