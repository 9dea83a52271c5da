from __future__ import annotations

import logging


def setup_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("interlude")
    logger.setLevel(level.upper())
    logger.handlers.clear()

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)

    logger.addHandler(ch)
    logger.propagate = False
    return logger
