"""structlog setup for the engine, the async runner and the ``mindstate`` CLI.

Engine components log dotted events (``stabilizer.switch_approved``,
``engine.motion_artifact``, ``runner.consumer_error`` ...) with keyword
context.  Everything is written to stderr; stdout belongs to the display
models that ``mindstate replay`` emits one JSON line at a time.
"""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(level: str = "INFO") -> None:
    """Configure structlog once at process startup.

    ``level`` is a stdlib level name (case-insensitive); unknown names fall
    back to INFO.  A terminal gets the console renderer, anything else gets
    one JSON object per event.
    """
    threshold = getattr(logging, level.upper(), logging.INFO)
    renderer = structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
