"""
Application-level exceptions.

Every relay error carries the HTTP status it maps to and a client-safe message;
the API server renders them as {"error": message}. Chain error details are
logged where they happen and never placed in the message.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500
    message = "Internal error"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        body.update(self.extra)
        return body


class BadRequest(RelayError):
    status_code = 400
    message = "Bad request"


class Forbidden(RelayError):
    status_code = 403
    message = "Invalid tap key"


class NotFound(RelayError):
    status_code = 404
    message = "Not found"


class MethodNotAllowed(RelayError):
    status_code = 405
    message = "Method not allowed"


class MintInProgress(RelayError):
    status_code = 409
    message = "Mint already in progress"


class RateLimited(RelayError):
    status_code = 429
    message = "Rate limit exceeded. Try again shortly."


class MintLimitReached(RelayError):
    status_code = 429
    message = "Mint limit reached for this address"


class Misconfigured(RelayError):
    status_code = 500
    message = "Relayer is not configured"


class MintFailed(RelayError):
    status_code = 500
    message = "Mint failed"


class LookupFailed(RelayError):
    status_code = 500
    message = "Minted lookup failed"


class MintTimeout(RelayError):
    status_code = 504
    message = "Mint confirmation timed out"


class ChainError(Exception):
    """Raised by chain clients when a transaction cannot be submitted or reverts."""


class ChainTimeout(ChainError):
    """Raised when a receipt does not arrive within the configured bound."""

    def __init__(self, tx_hash: str, timeout_sec: float) -> None:
        self.tx_hash = tx_hash
        self.timeout_sec = timeout_sec
        super().__init__(f"receipt for {tx_hash} not available after {timeout_sec}s")
