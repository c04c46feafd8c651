"""Observability module for logging."""

from crawlhttp.observability.logging import (
    configure_logging,
    fetch_context,
)


__all__ = [
    "configure_logging",
    "fetch_context",
]
