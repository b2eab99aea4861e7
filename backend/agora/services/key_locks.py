"""Keyed Locks — in-process serialization per entity key.

Invariants:
    - One asyncio.Lock per key while anyone holds or waits on it; dropped when idle
    - Multi-key acquisition is in sorted order, so two holders never deadlock
    - Unrelated keys never contend

Design Decisions:
    - Complements optimistic versions at the Repository: the lock removes
      in-process contention, the version check still catches other processes
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLocks:
    """Per-key asyncio locks with reference counting."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        for key in ordered:
            self._refs[key] = self._refs.get(key, 0) + 1
            self._locks.setdefault(key, asyncio.Lock())
        acquired: list[str] = []
        try:
            for key in ordered:
                await self._locks[key].acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
            for key in ordered:
                self._refs[key] -= 1
                if self._refs[key] == 0:
                    del self._refs[key]
                    del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
