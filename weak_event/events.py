"""Weak events: publishers that do not keep their subscribers alive.

Usage:
    class Window:
        def on_resize(self, size: tuple[int, int]) -> None:
            ...

    resized: WeakEvent[tuple[int, int]] = WeakEvent()
    window = Window()
    resized.subscribe(window.on_resize)

    await resized.publish((800, 600))
    del window  # the subscription goes away with the window
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any, Generic, TypeVar

from .cancellation import CancellationToken
from .config import DispatchConfig
from .dispatcher import Dispatcher
from .exceptions import InvalidHandlerError
from .handler import HandlerRecord
from .registry import SubscriberRegistry

LOGGER = logging.getLogger(__name__)

TEvent = TypeVar("TEvent")


class _WeakEventBase:
    """Subscription bookkeeping shared by both event flavors."""

    def __init__(
        self,
        name: str | None = None,
        config: DispatchConfig | None = None,
    ) -> None:
        self.name = name
        self._registry = SubscriberRegistry()
        self._dispatcher = Dispatcher(self._registry, config=config, name=name)

    def subscribe(self, handler: Callable[..., Any]) -> None:
        """Register ``handler``; sync and async callables are both accepted.

        Bound methods and callable instances are tracked through a weak
        reference to their owner. Plain functions are kept strongly.

        Raises:
            InvalidHandlerError: ``handler`` is None, not callable, or its
                owner cannot be weakly referenced.
        """
        _require_handler(handler)
        record = HandlerRecord(handler)
        self._registry.add(record)
        LOGGER.debug(
            "weak_event.subscribe",
            extra={
                "event": "weak_event.subscribe",
                "event_name": self.name,
                "handler": repr(record),
            },
        )

    def unsubscribe(self, handler: Callable[..., Any]) -> bool:
        """Remove every registration of ``handler``'s owner and function.

        Returns False when nothing matched.
        """
        _require_handler(handler)
        removed = self._registry.remove_all_matching(handler)
        LOGGER.debug(
            "weak_event.unsubscribe",
            extra={
                "event": "weak_event.unsubscribe",
                "event_name": self.name,
                "removed": removed,
            },
        )
        return removed

    @property
    def subscriber_count(self) -> int:
        """Advisory count of live subscribers."""
        return self._registry.count()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"subscribers={self.subscriber_count})"
        )


class WeakEvent(_WeakEventBase, Generic[TEvent]):
    """Event whose handlers receive a single payload argument."""

    async def publish(
        self,
        event_data: TEvent,
        cancellation_token: CancellationToken | None = None,
    ) -> None:
        """Deliver ``event_data`` to each live handler in subscription order."""
        await self._dispatcher.publish((event_data,), cancellation_token)


class WeakSignal(_WeakEventBase):
    """Event whose handlers take no payload."""

    async def publish(self, cancellation_token: CancellationToken | None = None) -> None:
        """Invoke each live handler in subscription order."""
        await self._dispatcher.publish((), cancellation_token)


def _require_handler(handler: Any) -> None:
    if handler is None:
        raise InvalidHandlerError("handler must not be None.")
    if not callable(handler):
        raise InvalidHandlerError(
            f"handler must be callable, got {type(handler).__name__!r}."
        )
