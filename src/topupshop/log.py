"""Loguru setup shared by the API, the poller and the CLI."""

import sys

from loguru import logger

from .config import get_config

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Replace loguru's default sink with the app's format and level."""
    global _configured
    logger.remove()
    logger.configure(extra={"name": "topupshop"})
    logger.add(sys.stderr, level=(level or get_config().log_level).upper(), format=_FORMAT)
    _configured = True


def get_logger(name: str | None = None):
    """Get the configured logger, bound to a component name."""
    if not _configured:
        configure_logging()
    if name:
        return logger.bind(name=name)
    return logger
