"""
Logging setup.

Configures loguru sinks with level and file rotation from settings.
"""

import sys

from loguru import logger

from app.config.settings import Settings, settings as default_settings


def setup_logging(config: Settings | None = None) -> None:
    """Configure logger with stderr output and file rotation."""
    config = config or default_settings

    logger.remove()
    logger.add(sys.stderr, level=config.log_level)

    if config.log_file:
        logger.add(
            config.log_file,
            rotation="1 day",
            retention="7 days",
            level=config.log_level,
            encoding="utf-8",
        )

    logger.info(f"Logging configured ({config.environment}, level={config.log_level})")
