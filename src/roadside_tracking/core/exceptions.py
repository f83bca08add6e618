"""Standardized exception hierarchy for the tracking engine."""

from typing import Any


class TrackingError(Exception):
    """Base exception for all tracking errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(TrackingError):
    """Errors that may succeed on retry."""

    pass


class NetworkError(TransientError):
    """Network-related transient errors (timeout, connection refused)."""

    pass


class ServiceUnavailableError(TransientError):
    """External service temporarily unavailable (5xx responses)."""

    pass


class PermanentError(TrackingError):
    """Errors that will not succeed on retry."""

    pass


class ValidationError(PermanentError):
    """Invalid input or data format."""

    pass


class InvalidInputError(ValidationError):
    """Malformed coordinate or missing required session/order fields."""

    pass


class NotFoundError(PermanentError):
    """Requested entity does not exist."""

    pass


class WriteConflictError(PermanentError):
    """Concurrent modification detected while writing a document."""

    pass


class StateError(PermanentError):
    """Invalid state transition."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass


class SubscriptionFailure(PermanentError):
    """Live-feed subscription could not be established or dropped."""

    pass


class FatalError(TrackingError):
    """Critical errors requiring immediate shutdown."""

    pass


class TimerFailure(FatalError):
    """Scheduler failed to deliver a timer callback."""

    pass
