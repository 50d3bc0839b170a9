"""Logging configuration.

stdout carries the JSON-RPC stream in stdio mode, so every log line goes to
stderr regardless of transport.
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.typing import FilteringBoundLogger


def setup_logging(level: str = "INFO", json_output: bool = False, verbose: bool = False) -> None:
    """Configure stdlib logging and structlog.

    Args:
        level: Log level used in verbose mode
        json_output: Render events as JSON instead of console key=value
        verbose: Without it only warnings and errors are emitted
    """
    effective = getattr(logging, level.upper(), logging.INFO) if verbose else logging.WARNING

    logging.basicConfig(
        level=effective,
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Get a logger under the ``openapi_bridge`` namespace."""
    if name:
        return structlog.get_logger(f"openapi_bridge.{name}")
    return structlog.get_logger("openapi_bridge")
