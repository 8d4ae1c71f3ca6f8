import logging
import os
import sys

LOG_LEVEL_ENV = "NORMY_LOG_LEVEL"
LOG_FORMAT = '[%(asctime)s] %(levelname)s normy.%(module)s: %(message)s'


def _level_from_env() -> int:
    """NORMY_LOG_LEVEL (DEBUG, INFO, WARNING...) or INFO when unset or unknown."""
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Logger writing to stdout with the normy format. The level comes from
    NORMY_LOG_LEVEL; handlers are attached only once per logger name.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(_level_from_env())
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
