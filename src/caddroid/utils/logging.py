"""Logging setup using rich."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "caddroid"


def setup_logging(
    debug: bool = False, console: Console | None = None
) -> logging.Logger:
    """Route the ``caddroid`` logger through a RichHandler on stderr.

    Calling it again replaces the previous handler, so the CLI can switch
    levels after reading its config.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    return logger
