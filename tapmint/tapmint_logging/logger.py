"""
structlog setup for the relayer.

Every record carries timestamp (UTC, ISO 8601), level, logger and event_type,
plus whatever keyword fields the call site passes. LOG_FORMAT=json (default)
writes one JSON object per line to stdout; any other value gives the colored
console renderer for local runs. LOG_LEVEL filters below the given level.

Imports nothing from tapmint so any module can import it first.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog


def _level_from_env() -> int:
    name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    return getattr(logging, name, logging.INFO)


def _renderer() -> Any:
    if os.getenv("LOG_FORMAT", "json").strip().lower() == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            # event names are snake_case identifiers, not prose
            structlog.processors.EventRenamer("event_type"),
            _renderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_from_env()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    setup_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger with its name bound, e.g.

        logger = get_logger(__name__)
        logger.warning("mint_receipt_timeout", tx_hash=tx_hash, timeout_sec=120)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_request(request_id: str, client_ip: str | None = None) -> structlog.BoundLogger:
    """Relay logger carrying request_id, and client_ip when known."""
    fields: dict[str, Any] = {"request_id": request_id}
    if client_ip:
        fields["client_ip"] = client_ip
    return get_logger("tapmint.relay").bind(**fields)


def short_address(address: str | None) -> str:
    if not address:
        return ""
    if len(address) <= 12:
        return address
    return f"{address[:10]}..."
