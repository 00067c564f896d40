"""Top-level package for weak-event."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .cancellation import CancellationToken
    from .config import load_config
    from .events import WeakEvent, WeakSignal
    from .exceptions import (
        ConfigValidationError,
        InvalidHandlerError,
        PublishCancelledError,
        WeakEventError,
    )
    from .logging_utils import configure_logging

__all__ = [
    "CancellationToken",
    "ConfigValidationError",
    "InvalidHandlerError",
    "PublishCancelledError",
    "WeakEvent",
    "WeakEventError",
    "WeakSignal",
    "configure_logging",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols so that config and logging stay optional at import time."""
    if name in {"WeakEvent", "WeakSignal"}:
        from .events import WeakEvent, WeakSignal

        return {"WeakEvent": WeakEvent, "WeakSignal": WeakSignal}[name]
    if name == "CancellationToken":
        from .cancellation import CancellationToken

        return CancellationToken
    if name in {
        "ConfigValidationError",
        "InvalidHandlerError",
        "PublishCancelledError",
        "WeakEventError",
    }:
        from .exceptions import (
            ConfigValidationError,
            InvalidHandlerError,
            PublishCancelledError,
            WeakEventError,
        )

        return {
            "ConfigValidationError": ConfigValidationError,
            "InvalidHandlerError": InvalidHandlerError,
            "PublishCancelledError": PublishCancelledError,
            "WeakEventError": WeakEventError,
        }[name]
    if name == "load_config":
        from .config import load_config

        return load_config
    if name == "configure_logging":
        from .logging_utils import configure_logging

        return configure_logging
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
