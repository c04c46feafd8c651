"""Structured logging for the fetcher.

Events are rendered by structlog, one JSON object per line by default.
``fetch_context`` tags every event emitted during one fetch with a shared
``fetch_id``, so connection, parser and client events can be grouped when
many crawler workers write to the same stream.
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

import structlog


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelNamesMapping().get(level.strip().upper())
    if resolved is None:
        msg = f"Unknown log level: {level}"
        raise ValueError(msg)
    return resolved


def configure_logging(
    level: int | str = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog for fetcher events.

    Args:
        level: Minimum level, as a number or a name such as ``"DEBUG"``.
        output: Stream receiving rendered events.
        json_format: Render JSON lines; otherwise use the console renderer.

    Raises:
        ValueError: If a level name is not known to ``logging``.
    """
    numeric_level = _resolve_level(level)
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=output, level=numeric_level)


@contextmanager
def fetch_context() -> Iterator[str]:
    """Tag log events emitted inside the block with a new fetch id.

    The id lives in a context variable, so concurrent fetches on other
    threads or tasks keep their own ids. An id bound by an enclosing block
    is restored on exit.

    Yields:
        The fetch id.
    """
    fetch_id = uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(fetch_id=fetch_id):
        yield fetch_id
