"""Verbosity toggle for the ``jamfkit`` loggers.

The library only emits records. Applications configure handlers,
or call :func:`set_verbose` for a quick stream handler.
"""
import logging
import sys

__all__ = ["set_verbose", "is_verbose", "DEFAULT_LOG_FORMAT"]

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("jamfkit")
logger.addHandler(logging.NullHandler())

_verbose_handler = None


def set_verbose(verbose=True, stream=None, level=logging.DEBUG):
    """Turn verbose output of the ``jamfkit`` loggers on or off

    Parameters
    ----------
    verbose: bool
        attach (``True``) or remove (``False``) the stream handler
    stream
        where to write, default :data:`sys.stderr`
    level: int
        the level to log at while verbose
    """
    global _verbose_handler
    if _verbose_handler is not None:
        logger.removeHandler(_verbose_handler)
        _verbose_handler = None
    if not verbose:
        logger.setLevel(logging.NOTSET)
        return
    _verbose_handler = logging.StreamHandler(stream or sys.stderr)
    _verbose_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
    logger.addHandler(_verbose_handler)
    logger.setLevel(level)


def is_verbose():
    return _verbose_handler is not None
