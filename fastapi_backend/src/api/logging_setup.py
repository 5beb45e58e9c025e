"""
Process-wide logging configuration.

Usage:
    from src.api.logging_setup import configure_logging

    configure_logging("INFO")
    logger = logging.getLogger(__name__)
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger.

    Calling it again replaces the handler instead of stacking a second one,
    and uvicorn's own loggers keep propagating into it.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
