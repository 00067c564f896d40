"""One-shot cancellation signal shared between a publisher and its handlers."""

from __future__ import annotations

import asyncio
import threading

from .exceptions import PublishCancelledError


class CancellationToken:
    """Thread-safe flag that can be set once and never cleared.

    A token may be cancelled from any thread; ``publish`` checks it before
    the pass starts and again before each handler runs. Coroutines blocked in
    ``wait()`` are woken on their own loop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future[None]]] = []

    @classmethod
    def cancelled(cls) -> CancellationToken:
        """Return a token that is already cancelled."""
        token = cls()
        token.cancel()
        return token

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            waiters, self._waiters = self._waiters, []
        for loop, future in waiters:
            try:
                loop.call_soon_threadsafe(_wake, future)
            except RuntimeError:
                # Loop already closed; nobody is left to wake.
                continue

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise PublishCancelledError("Publish was cancelled.")

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()
        with self._lock:
            if self._cancelled:
                return
            self._waiters.append((loop, future))
        try:
            await future
        finally:
            with self._lock:
                if (loop, future) in self._waiters:
                    self._waiters.remove((loop, future))

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


def _wake(future: asyncio.Future[None]) -> None:
    if not future.done():
        future.set_result(None)
