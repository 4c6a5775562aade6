# collections_sync/utils/logger.py
import logging
import sys

LEVELS = {"ERROR": logging.ERROR, "WARN": logging.WARNING, "INFO": logging.INFO, "DEBUG": logging.DEBUG, "NONE": 100}
FORMAT = "[%(asctime)s][%(levelname)s] %(message)s"
DATEFMT = "%H:%M:%S"

logger = logging.getLogger("collections_sync")


def configure(level: str = "INFO", handlers=None):
    """Attach the stdout handler (plus any host handlers, e.g. gunicorn's) once."""
    logging.addLevelName(logging.WARNING, "WARN")
    logger.setLevel(LEVELS.get((level or "INFO").upper(), logging.INFO))
    if getattr(logger, "_configured", False):
        return logger
    for h in handlers or []:
        logger.addHandler(h)
    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(logging.Formatter(FORMAT, DATEFMT))
    logger.addHandler(sh)
    logger._configured = True
    return logger


def debug(msg): logger.debug(msg)
def info(msg):  logger.info(msg)
def warn(msg):  logger.warning(msg)
def error(msg): logger.error(msg)
