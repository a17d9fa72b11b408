"""
Structured logging for tapmint.

JSON or console records via structlog; modules call get_logger(__name__).
"""

from tapmint.tapmint_logging.logger import bind_request, get_logger, short_address

__all__ = ["bind_request", "get_logger", "short_address"]
