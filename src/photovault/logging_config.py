"""Logging setup for applications embedding PhotoVault.

Only the ``photovault`` logger is touched; the host application's root logger
and its handlers are left alone.
"""

import logging
import sys
from typing import Optional, Union

from photovault.config import PhotoVaultConfig

LOGGER_NAME = "photovault"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

_HANDLER_ATTR = "_photovault_handler"


def configure_logging(
    level: Union[int, str, None] = None,
    config: Optional[PhotoVaultConfig] = None,
) -> logging.Logger:
    """
    Attach a stdout handler to the ``photovault`` logger and set its level.

    The level comes from ``level`` when given, else ``config.log_level``,
    else ``PHOTOVAULT_LOG_LEVEL`` via :meth:`PhotoVaultConfig.from_env`.
    Calling this again only updates the level.
    """
    if level is None:
        level = (config or PhotoVaultConfig.from_env()).log_level
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not any(getattr(h, _HANDLER_ATTR, False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        setattr(handler, _HANDLER_ATTR, True)
        logger.addHandler(handler)
    return logger
