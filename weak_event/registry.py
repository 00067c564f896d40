"""Ordered, lock-protected collection of handler records."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .handler import HandlerRecord
from .locking import ReadWriteLock


class SubscriberRegistry:
    """Keep handler records in subscription order.

    Structural changes take the write side of the lock; ``snapshot`` and
    ``count`` take the read side. All operations are short and synchronous,
    so callers on any thread (including a handler in the middle of a publish
    pass) can use them without deadlocking.
    """

    def __init__(self) -> None:
        self._records: list[HandlerRecord] = []
        self._lock = ReadWriteLock()

    def add(self, record: HandlerRecord) -> None:
        with self._lock.write():
            self._records.append(record)

    def remove_all_matching(self, handler: Callable[..., Any]) -> bool:
        """Remove every record matching ``handler``; return True if any were removed."""
        with self._lock.write():
            kept = [record for record in self._records if not record.matches(handler)]
            removed = len(self._records) - len(kept)
            if removed:
                self._records = kept
        return removed > 0

    def prune_dead(self) -> int:
        """Drop records whose owner has been collected and return how many went."""
        with self._lock.write():
            alive = [record for record in self._records if record.is_alive]
            pruned = len(self._records) - len(alive)
            if pruned:
                self._records = alive
        return pruned

    def snapshot(self) -> list[HandlerRecord]:
        """Return an independent copy of the current ordering."""
        with self._lock.read():
            return list(self._records)

    def count(self) -> int:
        """Advisory number of live records; does not prune."""
        with self._lock.read():
            return sum(1 for record in self._records if record.is_alive)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._records)
