"""Logging setup for the command line interface."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Route codesentinel logs through a rich handler on stderr.

    Args:
        verbose: Enable DEBUG level logging.
        quiet: Only show errors.

    Returns:
        The codesentinel package logger.
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        markup=False,  # Log messages contain file paths and code
        show_path=verbose,
    )

    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=[handler], force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)

    logger = logging.getLogger("codesentinel")
    logger.setLevel(level)
    return logger
