import logging
import sys

LOGGER_NAME = "klocc"
LOG_FORMAT = "[%(created)10.0f] %(levelname)s %(name)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the package logger.

    Every module logs through ``logging.getLogger(__name__)``, so attaching a
    single handler to the ``klocc`` logger covers the whole service. Calling
    this twice (app reloads, tests building several apps) keeps one handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    # Avoid adding handlers twice if reloaded
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
