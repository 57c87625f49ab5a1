"""Logging configuration for kcprovider.

Structured logging via loguru. Library logging is disabled by default and
enabled by `setup()`; the returned handler ids are passed to `teardown()`.

Example:
    from kcprovider.logging import LogConfig, setup, teardown

    ids = setup(LogConfig(level="DEBUG", file="kcprovider.log"))
    try:
        ...
    finally:
        teardown(ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Literal, TypeAlias

from loguru import logger

# Disable by default (library behavior)
logger.disable("kcprovider")

LogLevel: TypeAlias = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} | {extra} - {message}"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum console log level.
        file: Path to log file. If provided, logs are written to this file.
        console: Whether to log to stderr. Defaults to True.
        rotation: File rotation policy (e.g., "50 MB", "1 day").
        retention: Number of old log files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def setup(config: LogConfig) -> list[int]:
    logger.enable("kcprovider")
    handler_ids: list[int] = []

    if config.console:
        hid = logger.add(
            sys.stderr,
            level=config.level,
            format=CONSOLE_FORMAT,
            colorize=True,
            filter=_with_component,
        )
        handler_ids.append(hid)

    if config.file:
        hid = logger.add(
            config.file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=config.rotation,
            retention=config.retention,
            compression="zip",
            diagnose=False,  # tracebacks may hold credentials
            enqueue=True,
            filter="kcprovider",
        )
        handler_ids.append(hid)

    return handler_ids


def teardown(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("kcprovider")


def _with_component(record: dict) -> bool:
    if not record["name"] or not record["name"].startswith("kcprovider"):
        return False
    record["extra"].setdefault("component", record["name"])
    return True
