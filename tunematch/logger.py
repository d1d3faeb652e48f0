"""Logging utilities."""

import logging

from tunematch.config import LoggingConfig


def setup_logging(config: LoggingConfig) -> None:
    """Setup application logging.

    Args:
        config: Logging configuration
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(logging.FileHandler(config.file))

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
