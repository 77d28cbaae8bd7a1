from __future__ import annotations

import logging
from logging import Handler

_NOISY_LOGGERS = ("httpx", "httpcore", "filelock")


def setup_logging(level: str = "INFO") -> None:
    """Configure application logging once."""
    logging.captureWarnings(True)

    root = logging.getLogger()
    if root.handlers:
        for handler in list(root.handlers):
            root.removeHandler(handler)
    handler: Handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    level = level.upper()
    root.setLevel(level)
    noisy_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


__all__ = ["setup_logging"]
