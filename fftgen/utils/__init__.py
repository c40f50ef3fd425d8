"""Utility modules for fftgen."""

from fftgen.utils.log_levels import configure_logging, parse_log_level

__all__ = [
    "configure_logging",
    "parse_log_level",
]
