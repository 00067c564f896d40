"""Domain exception hierarchy for weak events."""

from __future__ import annotations


class WeakEventError(RuntimeError):
    """Base class for all weak event errors."""


class InvalidHandlerError(WeakEventError, ValueError):
    """Raised when a handler is missing or cannot be tracked weakly."""


class PublishCancelledError(WeakEventError):
    """Raised when a publish pass observes its cancellation token."""


class ConfigValidationError(WeakEventError):
    """Raised when configuration cannot be validated safely."""
