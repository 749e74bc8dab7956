"""Logging configuration for remotedeploy.

All modules obtain their logger through ``get_logger(__name__)`` so that a
single call to ``setup_logging`` controls the verbosity of the whole package.
Loggers are children of the ``remotedeploy`` logger; handlers are installed
on that parent only.
"""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER_NAME = "remotedeploy"

DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("urllib3", "asyncio")

_HANDLER_ATTR = "_remotedeploy_handler"


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the package root logger.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        Logger instance
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure package logging.

    Safe to call more than once; the handler installed by a previous call is
    replaced rather than duplicated.

    Args:
        verbose: Enable DEBUG level output
        quiet: Only show warnings and errors (ignored when verbose is set)
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT))
    setattr(handler, _HANDLER_ATTR, True)

    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
