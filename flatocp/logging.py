import logging
import time
from contextlib import contextmanager
from logging import DEBUG, INFO, WARNING, ERROR, CRITICAL
from typing import Iterator, Optional

__all__ = [
    "logger",
    "set_log_level",
    "set_log_handlers",
    "timed",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

logger = logging.getLogger("flatocp")


def set_log_handlers(handlers: Optional[list] = None, to_file: Optional[str] = None) -> None:
    """Replace the handlers of the package logger.

    Args:
        handlers: Handlers to install. A stream handler is used if None.
        to_file: Also log to this file if given.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    fmt = logging.Formatter(fmt="%(name)s:%(levelname)s %(message)s")
    if handlers is None:
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        handlers = [sh]
    if to_file is not None:
        fh = logging.FileHandler(to_file, mode="w")
        fh.setFormatter(fmt)
        handlers = handlers + [fh]
    for handler in handlers:
        logger.addHandler(handler)


def set_log_level(level: int) -> None:
    """Set the log level of the package logger."""
    logger.setLevel(level)


@contextmanager
def timed(what: str) -> Iterator[None]:
    """Log the start and the elapsed time of a pass."""
    logger.info("%s ...", what)
    t0 = time.perf_counter()
    yield
    logger.info("... %s complete after %.3g seconds", what, time.perf_counter() - t0)
