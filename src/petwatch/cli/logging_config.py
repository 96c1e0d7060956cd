"""Logging bootstrap for the CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a rich handler to the ``petwatch`` logger.

    Log records go to stderr so that ``--json`` output on stdout stays parseable.

    Args:
        verbose: Log at DEBUG instead of WARNING.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger("petwatch")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
