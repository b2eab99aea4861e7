"""Keyed Locks — serialization per key, release on error, idle cleanup."""

import asyncio

import pytest

from agora.services.key_locks import KeyedLocks


async def test_same_key_is_serialized():
    locks = KeyedLocks()
    order = []

    async def worker(name):
        async with locks.hold("a"):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    await asyncio.gather(worker("x"), worker("y"))
    assert order in (
        ["x-in", "x-out", "y-in", "y-out"],
        ["y-in", "y-out", "x-in", "x-out"],
    )


async def test_unrelated_keys_do_not_contend():
    locks = KeyedLocks()
    async with locks.hold("a"):
        await asyncio.wait_for(_enter(locks, "b"), timeout=1)


async def _enter(locks, key):
    async with locks.hold(key):
        return True


async def test_opposite_key_orders_do_not_deadlock():
    locks = KeyedLocks()

    async def worker(keys):
        for _ in range(10):
            async with locks.hold(*keys):
                await asyncio.sleep(0)

    await asyncio.wait_for(
        asyncio.gather(worker(("a", "b")), worker(("b", "a"))), timeout=2,
    )


async def test_locks_dropped_when_idle_and_on_error():
    locks = KeyedLocks()
    with pytest.raises(RuntimeError):
        async with locks.hold("a", "b"):
            assert len(locks) == 2
            raise RuntimeError("boom")
    assert len(locks) == 0
    async with locks.hold("a"):
        pass
    assert len(locks) == 0


async def test_duplicate_keys_acquire_once():
    locks = KeyedLocks()
    async with locks.hold("a", "a"):
        assert len(locks) == 1
