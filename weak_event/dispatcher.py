"""Publish pass: prune, snapshot, then invoke handlers one at a time."""

from __future__ import annotations

from collections.abc import Sequence
import logging
import time
from typing import Any

from .cancellation import CancellationToken
from .config import DispatchConfig
from .handler import HandlerRecord
from .registry import SubscriberRegistry

LOGGER = logging.getLogger(__name__)


class Dispatcher:
    """Drive publish passes over a ``SubscriberRegistry``.

    The registry lock is only held while pruning and while copying the
    snapshot. Handlers run with no lock held, so they may subscribe or
    unsubscribe (themselves included) freely. Concurrent passes on the same
    registry are not ordered relative to each other.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        config: DispatchConfig | None = None,
        name: str | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or DispatchConfig()
        self._name = name

    async def publish(
        self,
        args: Sequence[Any] = (),
        cancellation_token: CancellationToken | None = None,
    ) -> None:
        """Invoke every live handler in subscription order.

        Raises:
            PublishCancelledError: The token was cancelled before the pass
                started or before one of the handlers ran.
            Exception: Whatever the first failing handler raised, unchanged.
        """
        token = cancellation_token if cancellation_token is not None else CancellationToken()
        self._check_cancelled(token, invoked=0)

        pruned = self._registry.prune_dead()
        if pruned and self._config.log_pruned:
            LOGGER.debug(
                "weak_event.pruned",
                extra={
                    "event": "weak_event.pruned",
                    "event_name": self._name,
                    "pruned": pruned,
                },
            )

        snapshot = self._registry.snapshot()
        for invoked, record in enumerate(snapshot):
            self._check_cancelled(token, invoked=invoked)
            await self._invoke(record, args, token)

    def _check_cancelled(self, token: CancellationToken, invoked: int) -> None:
        if not token.is_cancelled:
            return
        LOGGER.debug(
            "weak_event.publish.cancelled",
            extra={
                "event": "weak_event.publish.cancelled",
                "event_name": self._name,
                "invoked": invoked,
            },
        )
        token.raise_if_cancelled()

    async def _invoke(
        self,
        record: HandlerRecord,
        args: Sequence[Any],
        token: CancellationToken,
    ) -> None:
        started = time.monotonic()
        try:
            await record.invoke(args, token)
        except Exception as exc:
            LOGGER.warning(
                "weak_event.handler.failed",
                extra={
                    "event": "weak_event.handler.failed",
                    "event_name": self._name,
                    "handler": repr(record),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise

        threshold = self._config.slow_handler_threshold_seconds
        elapsed = time.monotonic() - started
        if threshold and elapsed >= threshold:
            LOGGER.warning(
                "weak_event.handler.slow",
                extra={
                    "event": "weak_event.handler.slow",
                    "event_name": self._name,
                    "handler": repr(record),
                    "elapsed_seconds": round(elapsed, 3),
                },
            )
