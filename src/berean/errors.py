"""Error taxonomy for the Berean client.

Every failure that reaches a caller is one of the ``BereanError`` subclasses
below. Raw transport failures are mapped into this closed set by
:func:`classify`; nothing unclassified is ever handed to ``on_error``.
"""

import json
from enum import Enum
from typing import Optional

import httpx

from .stream import InvalidPayloadError


class ErrorKind(str, Enum):
    """Closed set of user-facing failure kinds."""

    NETWORK_UNAVAILABLE = "network_unavailable"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    AI_SERVICE_UNAVAILABLE = "ai_service_unavailable"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


class BereanError(Exception):
    """Base exception for all classified Berean errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    title: str = "Unexpected Error"
    recovery_suggestion: str = "An unexpected error occurred. Please try again."

    def __init__(self, message: Optional[str] = None, details: dict = None):
        message = message or self.title
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NetworkUnavailableError(BereanError):
    """The device could not reach the generation service."""

    kind = ErrorKind.NETWORK_UNAVAILABLE
    title = "No Internet Connection"
    recovery_suggestion = "Please check your internet connection and try again."


class RateLimitExceededError(BereanError):
    """The usage gate or the service refused another request.

    HTTP: 429 Too Many Requests
    """

    kind = ErrorKind.RATE_LIMIT_EXCEEDED
    title = "Rate Limit Exceeded"
    recovery_suggestion = (
        "You've reached the message limit. Upgrade to Pro for unlimited "
        "conversations or try again later."
    )


class AIServiceUnavailableError(BereanError):
    """The generation service failed or took too long.

    HTTP: 5xx, or a generation that exceeded its time budget.
    """

    kind = ErrorKind.AI_SERVICE_UNAVAILABLE
    title = "AI Service Unavailable"
    recovery_suggestion = (
        "Our AI service is temporarily unavailable. Please try again in a few moments."
    )

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: int = 0,
        timed_out: bool = False,
    ):
        details = {}
        if status_code:
            details["status_code"] = status_code
        if timed_out:
            details["timed_out"] = True
        super().__init__(message, details)
        self.status_code = status_code
        self.timed_out = timed_out


class InvalidResponseError(BereanError):
    """The service answered, but with an empty or malformed payload."""

    kind = ErrorKind.INVALID_RESPONSE
    title = "Invalid Response"
    recovery_suggestion = "We received an unexpected response. Please try again."


class UnknownError(BereanError):
    """Anything that does not fit the other kinds. Carries the raw message."""

    kind = ErrorKind.UNKNOWN


class SessionStateError(Exception):
    """Raised when the message store is mutated out of turn.

    This signals a programming error in the caller, not a generation failure,
    and is never passed to ``on_error``.
    """

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class GenerationTimeoutError(TimeoutError):
    """Raised when a generation exceeds its wall-clock budget."""

    def __init__(self, elapsed_seconds: float, timeout_seconds: float):
        super().__init__(
            f"Generation timed out after {elapsed_seconds:.1f}s (limit {timeout_seconds}s)"
        )
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds


def _status_code_of(raw: BaseException) -> int:
    if isinstance(raw, httpx.HTTPStatusError):
        return raw.response.status_code
    status = getattr(raw, "status_code", 0)
    return status if isinstance(status, int) else 0


def classify(raw: BaseException) -> BereanError:
    """Map a raw failure onto the closed error taxonomy.

    The mapping is total and depends only on the shape of ``raw``, so the
    same kind of failure always yields the same kind of error.

    Args:
        raw: Any exception raised while opening or consuming a stream.

    Returns:
        A ``BereanError`` subclass instance.
    """
    if isinstance(raw, BereanError):
        return raw

    if isinstance(raw, TimeoutError):
        return AIServiceUnavailableError(str(raw) or "Request timed out", timed_out=True)

    if isinstance(raw, (httpx.ConnectTimeout, httpx.PoolTimeout)):
        return NetworkUnavailableError(f"Could not connect to the server: {raw}")
    if isinstance(raw, httpx.TimeoutException):
        return AIServiceUnavailableError(str(raw) or "Request timed out", timed_out=True)

    if isinstance(raw, (httpx.NetworkError, httpx.RemoteProtocolError, ConnectionError)):
        return NetworkUnavailableError(f"Could not connect to the server: {raw}")

    status_code = _status_code_of(raw)
    if status_code == 429:
        return RateLimitExceededError(str(raw) or None)
    if status_code >= 500:
        return AIServiceUnavailableError(str(raw) or None, status_code=status_code)

    if isinstance(raw, (InvalidPayloadError, json.JSONDecodeError)):
        return InvalidResponseError(str(raw) or None)

    return UnknownError(str(raw) or type(raw).__name__)
