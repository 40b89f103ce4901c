"""Error taxonomy for the SafePulse broadcast service.

``InvalidArgumentError`` is terminal for a request and maps to HTTP 400.
``RateLimitExceededError`` maps to HTTP 429.
Gateway errors never leave the dispatcher; they are absorbed per batch
and reported through :class:`~safepulse.models.DispatchResult`.
"""

from __future__ import annotations


class SafePulseError(Exception):
    """Base class for all SafePulse errors."""


class InvalidArgumentError(SafePulseError, ValueError):
    """A required field is missing or malformed.

    ``str(exc)`` is the short, machine-stable message returned to the
    client in the ``error`` field.
    """


class GatewayDeliveryError(SafePulseError):
    """The push gateway rejected a batch (non-2xx response)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GatewayUnavailableError(GatewayDeliveryError):
    """The push gateway timed out or could not be reached."""


class RateLimitExceededError(SafePulseError):
    """A caller used up its request budget; maps to HTTP 429."""

    def __init__(self, *, retry_after_seconds: int, limit: int) -> None:
        super().__init__("rate limit exceeded")
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
