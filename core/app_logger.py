# core/app_logger.py

import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER_NAME = "dismissal"
_DEFAULT_LEVEL = os.getenv("DISMISSAL_LOG_LEVEL", "INFO").upper()


def _resolve_level(level: str | None) -> int:
    name = (level or _DEFAULT_LEVEL).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(level: str | None = None) -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(_resolve_level(level))

    # avoid duplicate console handlers when called again with a new level
    handlers = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
    if not handlers:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
        handlers = [ch]

    for handler in handlers:
        handler.setLevel(logger.level)

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger(ROOT_LOGGER_NAME)
    return base.getChild(name) if name else base


logger = setup_logging()
