"""Tests for publish passes: cancellation, pruning and diagnostics."""

from __future__ import annotations

import asyncio
import gc
import logging
import threading
import unittest

from weak_event.cancellation import CancellationToken
from weak_event.config import DispatchConfig
from weak_event.dispatcher import Dispatcher
from weak_event.exceptions import PublishCancelledError
from weak_event.handler import HandlerRecord
from weak_event.registry import SubscriberRegistry


class Listener:
    """Bound handler used for pruning checks."""

    def __init__(self, calls: list[str]) -> None:
        self._calls = calls

    def on_event(self) -> None:
        self._calls.append("listener")


class DispatcherTests(unittest.IsolatedAsyncioTestCase):
    """Validate the prune/snapshot/invoke state machine."""

    def setUp(self) -> None:
        self.registry = SubscriberRegistry()
        self.calls: list[str] = []

    def _add(self, handler) -> None:  # type: ignore[no-untyped-def]
        self.registry.add(HandlerRecord(handler))

    async def test_cancelled_before_start_does_not_prune(self) -> None:
        listener = Listener(self.calls)
        self._add(listener.on_event)
        del listener
        gc.collect()

        dispatcher = Dispatcher(self.registry)
        with self.assertRaises(PublishCancelledError):
            await dispatcher.publish((), CancellationToken.cancelled())

        self.assertEqual(len(self.registry), 1)
        self.assertEqual(self.registry.count(), 0)

    async def test_cancellation_between_handlers_stops_pass(self) -> None:
        token = CancellationToken()

        def first() -> None:
            self.calls.append("first")
            token.cancel()

        def second() -> None:
            self.calls.append("second")

        self._add(first)
        self._add(second)

        with self.assertRaises(PublishCancelledError):
            await Dispatcher(self.registry).publish((), token)

        self.assertEqual(self.calls, ["first"])
        self.assertEqual(len(self.registry), 2)

    async def test_async_handler_observes_same_token(self) -> None:
        token = CancellationToken()
        seen: list[CancellationToken] = []

        async def handler(cancellation_token: CancellationToken) -> None:
            seen.append(cancellation_token)

        self._add(handler)
        await Dispatcher(self.registry).publish((), token)

        self.assertEqual(seen, [token])

    async def test_dead_records_are_pruned_at_start_of_pass(self) -> None:
        listener = Listener(self.calls)
        self._add(listener.on_event)
        self._add(lambda: self.calls.append("static"))
        del listener
        gc.collect()

        with self.assertLogs("weak_event.dispatcher", level="DEBUG") as logs:
            await Dispatcher(self.registry, name="pruning").publish()

        self.assertEqual(self.calls, ["static"])
        self.assertEqual(len(self.registry), 1)
        self.assertTrue(any("weak_event.pruned" in line for line in logs.output))

    async def test_prune_logging_can_be_disabled(self) -> None:
        listener = Listener(self.calls)
        self._add(listener.on_event)
        del listener
        gc.collect()

        dispatcher = Dispatcher(self.registry, config=DispatchConfig(log_pruned=False))
        logger = logging.getLogger("weak_event.dispatcher")
        with self.assertNoLogs(logger, level="DEBUG"):
            await dispatcher.publish()

        self.assertEqual(len(self.registry), 0)

    async def test_slow_handler_emits_warning(self) -> None:
        async def slow() -> None:
            await asyncio.sleep(0.05)

        self._add(slow)
        config = DispatchConfig(slow_handler_threshold_seconds=0.01)

        with self.assertLogs("weak_event.dispatcher", level="WARNING") as logs:
            await Dispatcher(self.registry, config=config).publish()

        self.assertTrue(any("weak_event.handler.slow" in line for line in logs.output))

    async def test_failed_handler_is_retried_on_next_pass(self) -> None:
        attempts: list[int] = []

        def flaky() -> None:
            attempts.append(len(attempts))
            if len(attempts) == 1:
                raise ConnectionError("first attempt fails")

        self._add(flaky)
        dispatcher = Dispatcher(self.registry)

        with self.assertRaises(ConnectionError):
            await dispatcher.publish()
        await dispatcher.publish()

        self.assertEqual(attempts, [0, 1])

    async def test_empty_registry_publishes_nothing(self) -> None:
        await Dispatcher(self.registry).publish(("payload",))
        self.assertEqual(self.calls, [])


class CancellationTokenTests(unittest.IsolatedAsyncioTestCase):
    """Validate the one-shot cancellation flag."""

    def test_new_token_is_not_cancelled(self) -> None:
        token = CancellationToken()
        self.assertFalse(token.is_cancelled)
        token.raise_if_cancelled()

    def test_cancel_is_sticky(self) -> None:
        token = CancellationToken()
        token.cancel()
        token.cancel()
        self.assertTrue(token.is_cancelled)
        with self.assertRaises(PublishCancelledError):
            token.raise_if_cancelled()

    def test_cancelled_factory(self) -> None:
        self.assertTrue(CancellationToken.cancelled().is_cancelled)

    async def test_wait_returns_after_cancel_from_thread(self) -> None:
        token = CancellationToken()
        timer = threading.Timer(0.01, token.cancel)
        timer.start()
        await asyncio.wait_for(token.wait(), timeout=2)
        timer.join(timeout=2)
        self.assertTrue(token.is_cancelled)

    async def test_wait_returns_immediately_when_already_cancelled(self) -> None:
        await asyncio.wait_for(CancellationToken.cancelled().wait(), timeout=0.5)

    async def test_cancel_wakes_every_waiter_without_polling(self) -> None:
        token = CancellationToken()
        waiters = [asyncio.create_task(token.wait()) for _ in range(3)]
        await asyncio.sleep(0)
        self.assertFalse(any(task.done() for task in waiters))

        token.cancel()
        await asyncio.wait_for(asyncio.gather(*waiters), timeout=0.5)

        self.assertTrue(all(task.done() for task in waiters))
        self.assertEqual(token._waiters, [])

    async def test_abandoned_waiter_is_forgotten(self) -> None:
        token = CancellationToken()
        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(token.wait(), timeout=0.01)
        self.assertEqual(token._waiters, [])


if __name__ == "__main__":
    unittest.main()
