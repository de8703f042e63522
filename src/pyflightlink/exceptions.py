"""Custom exception hierarchy for pyflightlink."""

from __future__ import annotations


class FlightLinkError(Exception):
    """Base exception for all pyflightlink errors."""


class FlightLinkConfigError(FlightLinkError):
    """Invalid or missing configuration."""


class FlightLinkTransportError(FlightLinkError):
    """Socket-level failure (bind, send, closed transport)."""


class MalformedFrameError(FlightLinkError):
    """A frame failed length or checksum validation.

    Malformed frames are never attributed to a pending exchange, so they
    are dropped without triggering a retry.
    """

    def __init__(self, message: str, *, tag: int | None = None) -> None:
        self.tag = tag
        super().__init__(message)


class SequenceViolationError(FlightLinkError):
    """A mission item arrived for an index other than the one requested."""

    def __init__(self, *, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"Expected mission item {expected}, received {received}")


class ExchangeFailedError(FlightLinkError):
    """A request/response exchange ended without its reply.

    Terminal for that exchange: nothing retries the surrounding download.
    """

    def __init__(self, message: str, *, request_kind: str, expected_kind: str, attempts: int) -> None:
        self.request_kind = request_kind
        self.expected_kind = expected_kind
        self.attempts = attempts
        super().__init__(message)


class RetryExhaustedError(ExchangeFailedError):
    """A request received no matching reply after every attempt."""

    def __init__(self, *, request_kind: str, expected_kind: str, attempts: int) -> None:
        super().__init__(
            f"No {expected_kind} reply to {request_kind} after {attempts} attempts",
            request_kind=request_kind,
            expected_kind=expected_kind,
            attempts=attempts,
        )


class ExchangeSupersededError(ExchangeFailedError):
    """A newer request took the exchange slot before the reply arrived."""

    def __init__(self, *, request_kind: str, expected_kind: str, attempts: int) -> None:
        super().__init__(
            f"{request_kind} awaiting {expected_kind} superseded after {attempts} attempts",
            request_kind=request_kind,
            expected_kind=expected_kind,
            attempts=attempts,
        )


class UnknownModeError(FlightLinkError, ValueError):
    """``set_mode`` was called with a name missing from the mode table."""

    def __init__(self, mode: str) -> None:
        self.mode = mode
        super().__init__(f"Unknown flight mode: {mode!r}")
