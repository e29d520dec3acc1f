"""
Rich console logging for Pixoo Commander.

Library modules only call get_logger(__name__). Applications (the demos, an
editor UI) call setup_logging() once to route every record through a
RichHandler. Network scans open hundreds of short-lived HTTP connections, so
the chatty transport loggers are capped at WARNING unless asked otherwise.
"""

import logging
from typing import Iterable, Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "pixoo_commander"

# Loggers that emit one record per connection or frame at DEBUG/INFO
TRANSPORT_LOGGERS: tuple[str, ...] = ("urllib3", "websockets")

_handler: Optional[RichHandler] = None


def setup_logging(
    level: int = logging.INFO,
    show_time: bool = True,
    show_path: bool = False,
    rich_tracebacks: bool = True,
    console: Optional[Console] = None,
    transport_level: int = logging.WARNING,
    quiet_loggers: Iterable[str] = TRANSPORT_LOGGERS,
) -> RichHandler:
    """
    Install a RichHandler on the root logger.

    Calling it again only updates the levels; the handler installed by the
    first call is kept and returned.

    Args:
        level: Level for the pixoo_commander loggers and the root logger
        show_time: Show a timestamp column
        show_path: Show the emitting file and line
        rich_tracebacks: Render exceptions with rich tracebacks
        console: Console to write to (stderr if None)
        transport_level: Level applied to every logger in ``quiet_loggers``
        quiet_loggers: Third-party loggers to cap at ``transport_level``

    Returns:
        The installed handler

    Example:
        >>> import logging
        >>> from pixoo_commander.logging_config import setup_logging
        >>> setup_logging(level=logging.DEBUG)
    """
    global _handler

    if _handler is None:
        _handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=show_time,
            show_path=show_path,
            rich_tracebacks=rich_tracebacks,
            markup=False,
            log_time_format="[%X]",
        )
        _handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logging.basicConfig(level=level, handlers=[_handler], force=True)

    logging.getLogger().setLevel(level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(transport_level)

    return _handler


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, normally called with ``__name__``."""
    return logging.getLogger(name)


def set_module_level(module_name: str, level: int) -> None:
    """
    Override the level of one module, e.g. to trace device traffic.

    Args:
        module_name: Dotted module name such as 'pixoo_commander.device_link'
        level: Logging level
    """
    logging.getLogger(module_name).setLevel(level)
