import logging
from typing import Optional

from clubfee.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stream handler to the package logger once."""
    logger = logging.getLogger("clubfee")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel((level or settings.LOG_LEVEL).upper())
    return logger
