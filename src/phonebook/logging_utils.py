from __future__ import annotations

import logging
import os
from typing import Optional

from .config_loader import PhonebookConfig

LOG_LEVEL_ENV = "PHONEBOOK_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def effective_level_name(config: PhonebookConfig, level_override: Optional[str] = None) -> str:
    for candidate in (os.getenv(LOG_LEVEL_ENV), level_override, config.logging.level):
        if candidate:
            return str(candidate).strip().upper()
    return "WARNING"


def level_value(name: str) -> int:
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    # getLevelName returns "Level X" for names it does not know
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(config: PhonebookConfig, level_override: Optional[str] = None) -> int:
    """
    Configure the root logger and return the numeric level applied.

    Precedence: ``PHONEBOOK_LOG_LEVEL``, then ``level_override`` (the CLI
    flag), then ``config.logging.level``, then ``WARNING``.
    """
    level = level_value(effective_level_name(config, level_override))
    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    return level
