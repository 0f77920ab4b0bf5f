"""Structured logging utilities."""

from .diagnostics import JsonLineFormatter, configure_logging, utc_timestamp

__all__ = ["JsonLineFormatter", "configure_logging", "utc_timestamp"]
