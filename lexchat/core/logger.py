"""
Logging setup shared by the whole application.
"""

import logging
import sys

from lexchat.core.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
BASE_LOGGER_NAME = "lexchat"


def setup_logger(name: str = BASE_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger under the application namespace.

    The stdout handler lives on the base "lexchat" logger only; module
    loggers propagate to it.
    """
    settings = get_settings()
    base = logging.getLogger(BASE_LOGGER_NAME)
    if not base.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        base.addHandler(handler)
    base.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    return logging.getLogger(name)


logger = setup_logger()
