"""Centralized logging configuration for the OmniTutor service."""

from __future__ import annotations

import logging
from logging import Logger
from typing import Iterable


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: int | str = logging.INFO,
    *,
    handlers: Iterable[logging.Handler] | None = None,
) -> Logger:
    """Configure the root logger once; repeated calls only adjust the level."""

    logger = logging.getLogger()
    logger.setLevel(level)

    if getattr(logger, "_omnitutor_configured", False):
        return logger

    if handlers is None:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        logger.addHandler(stream_handler)
    else:
        for handler in handlers:
            logger.addHandler(handler)

    logger._omnitutor_configured = True  # type: ignore[attr-defined]
    return logger


__all__ = ["configure_logging", "DEFAULT_LOG_FORMAT"]
