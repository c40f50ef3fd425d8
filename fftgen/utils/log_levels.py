from __future__ import annotations

import logging

from fftgen.config import LoggingConfig

_LEVEL_ALIASES: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "TRACE": logging.DEBUG,
}


def parse_log_level(value: str | None, default: int) -> int:
    """Parse a level name or number from config/CLI into a logging level."""
    if not value:
        return default
    raw = value.strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    return _LEVEL_ALIASES.get(raw.upper().replace("-", "_"), default)


def configure_logging(config: LoggingConfig, verbose: bool = False) -> int:
    """Install the root handler for the CLI and return the effective level.

    ``verbose`` forces DEBUG regardless of the configured level.
    """
    level = logging.DEBUG if verbose else parse_log_level(config.level, logging.INFO)
    logging.basicConfig(level=level, format=config.format)
    logging.getLogger("fftgen").setLevel(level)
    return level
