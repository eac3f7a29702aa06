"""Logging setup."""

import logging

from ..config import LoggingConfig


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure root logging and quiet chatty HTTP libraries."""
    config = config or LoggingConfig()
    logging.basicConfig(level=config.level, format=config.format, force=True)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
