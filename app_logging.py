"""Logging configuration helpers."""

import logging

_PROJECT_LOGGERS = ("core", "services", "api", "scripts")


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to every project logger."""
    formatter = logging.Formatter("%(levelname)s: %(name)s: %(message)s")
    for name in _PROJECT_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(level.upper())
        if logger.handlers:
            continue
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
