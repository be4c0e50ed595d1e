"""Logging setup shared by the CLI and the pipeline."""

from __future__ import annotations

import logging
import sys

LOG_LEVELS = {
    "silly": logging.DEBUG,
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


def resolve_level(name: str) -> int:
    return LOG_LEVELS.get(name.strip().lower(), logging.INFO)


def setup_logging(level: str = "info") -> None:
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    resolved = resolve_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
