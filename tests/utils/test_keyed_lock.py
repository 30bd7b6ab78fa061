"""Tests for KeyedLock."""

import asyncio

from relay.utils.keyed_lock import KeyedLock


class TestKeyedLock:
    """SUT: KeyedLock.hold"""

    async def test_serializes_one_key_in_order(self):
        """Holders of one key should run one at a time, in arrival order."""
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("x"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"), worker("c"))
        assert order == ["a-in", "a-out", "b-in", "b-out", "c-in", "c-out"]

    async def test_keys_are_independent(self):
        """A held key should not block another key."""
        locks = KeyedLock()
        async with locks.hold("x"):
            assert locks.is_locked("x")
            async with locks.hold("y"):
                assert locks.is_locked("y")

    async def test_dropped_when_unused(self):
        """The lock of a key should be dropped once nobody holds or waits for it."""
        locks = KeyedLock()
        async with locks.hold("x"):
            assert len(locks) == 1
        assert len(locks) == 0
        assert locks.is_locked("x") is False

    async def test_kept_while_waited_for(self):
        """A waiting coroutine should keep the lock alive after the holder leaves."""
        locks = KeyedLock()
        entered = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with locks.hold("x"):
                entered.set()
                await release.wait()

        async def waiter():
            async with locks.hold("x"):
                assert len(locks) == 1

        first = asyncio.create_task(holder())
        await entered.wait()
        second = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(first, second)
        assert len(locks) == 0

    async def test_released_on_error(self):
        """An exception inside the block should still free the key."""
        locks = KeyedLock()
        try:
            async with locks.hold("x"):
                raise ValueError("boom")
        except ValueError:
            pass
        assert len(locks) == 0
