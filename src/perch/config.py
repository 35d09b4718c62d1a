"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, no string-key dict lookups.
"""

import logging
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, route_prefix="/api")
    """

    debug: bool = False
    log_level: str = "info"

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    # Decorator routing
    decorators_enabled: bool = True
    route_prefix: str = ""  # Prepended to every path declared with map_route


def configure_logging(config: AppConfig) -> logging.Logger:
    """Apply ``config.log_level`` to the ``perch`` logger hierarchy."""
    logger = logging.getLogger("perch")
    level = logging.DEBUG if config.debug else logging.getLevelName(config.log_level.upper())
    if isinstance(level, int):
        logger.setLevel(level)
    return logger
