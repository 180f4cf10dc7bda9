"""
Logging configuration for branchscope.

Log records go to stderr through rich so they never mix with command output
such as ``graph --json`` on stdout.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "branchscope"

LEVELS = {
    "quiet": logging.ERROR,
    "normal": logging.WARNING,
    "verbose": logging.DEBUG,
}

_installed: list[logging.Handler] = []


def setup_logging(verbosity: str = "normal", log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach branchscope's handlers to the ``branchscope`` logger.

    Calling it again replaces the handlers from the previous call, so a
    process that runs several commands does not log each line twice.

    Args:
        verbosity: One of ``quiet``, ``normal`` or ``verbose``
        log_file: Optional file path to append logs to

    Returns:
        The configured ``branchscope`` logger
    """
    if verbosity not in LEVELS:
        raise ValueError(f"Unknown verbosity: {verbosity!r}")
    level = LEVELS[verbosity]
    logger = logging.getLogger(LOGGER_NAME)

    while _installed:
        handler = _installed.pop()
        logger.removeHandler(handler)
        handler.close()

    # Branch names and commit subjects may contain [brackets]
    _installed.append(
        RichHandler(
            console=Console(stderr=True),
            markup=False,
            show_path=verbosity == "verbose",
        )
    )
    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        _installed.append(file_handler)

    for handler in _installed:
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the ``branchscope`` namespace.

    Args:
        name: Module name (e.g., 'branchscope.graph.builder')
              If None, returns the root branchscope logger
    """
    if name is None:
        return logging.getLogger(LOGGER_NAME)

    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"

    return logging.getLogger(name)
