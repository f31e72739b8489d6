"""Logging set-up for model building and solving.

Modules log through ``get_logger(__name__)``, so every record of this
package sits below the ``mip_dsl`` logger.
"""

import logging

from .config_manager import ConfigManager

# Solver libraries that log every LP/MIP call at INFO.
BACKEND_LOGGERS = ("pulp", "pyscipopt")


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown logging level in configuration: {level!r}")
    return number


def setup_logging(config_manager: ConfigManager | None = None, level: str | None = None) -> None:
    """Configure the root logger from the ``logging`` section of the configuration.

    Args:
        config_manager: Source of ``logging.level`` and ``logging.format``;
            the default configuration when None.
        level: Level name that overrides ``logging.level``, e.g. ``"DEBUG"``
            while debugging a single model.

    Raises:
        ValueError: If the level is not a logging level name
    """
    if config_manager is None:
        config_manager = ConfigManager()
    settings = config_manager.config.logging

    logging.basicConfig(
        level=_level_number(level or settings.level),
        format=settings.format,
        force=True,
    )
    for name in BACKEND_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
