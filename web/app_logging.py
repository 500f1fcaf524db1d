"""Logging configuration helpers."""

import logging

APP_LOGGERS = ("controller", "imaging", "web")


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to each application logger."""
    formatter = logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    for name in APP_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(level.upper())
        if logger.handlers:
            continue
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
