"""Utility services for the MCP server."""

from .periods import parse_date_from, parse_date_to, parse_occurred_at, parse_period

__all__ = [
    "parse_date_from",
    "parse_date_to",
    "parse_occurred_at",
    "parse_period",
]
