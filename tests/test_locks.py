"""Tests for the keyed lock registry."""

import asyncio

import pytest

from tronsigner.utils.locks import KeyedLocks, LockTimeoutError


class TestKeyedLocks:
    """Tests for per-key serialization."""

    @pytest.mark.asyncio
    async def test_lock_held_inside_context(self):
        """Test that the key is locked inside the context and released after."""
        locks = KeyedLocks()

        async with locks.hold("single.transfer:order-1"):
            assert locks.is_locked("single.transfer:order-1")

        assert not locks.is_locked("single.transfer:order-1")

    @pytest.mark.asyncio
    async def test_registry_drops_idle_entries(self):
        """Test that entries are removed once nobody holds them."""
        locks = KeyedLocks()

        async with locks.hold("a"):
            async with locks.hold("b"):
                assert len(locks) == 2

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        """Test that tasks sharing a key run one after the other."""
        locks = KeyedLocks()
        results = []

        async def task(name, delay):
            async with locks.hold("hd.transfer:order-1", timeout=10.0):
                results.append(f"{name}_start")
                await asyncio.sleep(delay)
                results.append(f"{name}_end")

        await asyncio.gather(task("A", 0.05), task("B", 0.05))

        assert results in [
            ["A_start", "A_end", "B_start", "B_end"],
            ["B_start", "B_end", "A_start", "A_end"],
        ]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        """Test that unrelated keys do not block each other."""
        locks = KeyedLocks()
        results = []

        async def task(key):
            async with locks.hold(key, timeout=10.0):
                results.append(f"{key}_start")
                await asyncio.sleep(0.05)
                results.append(f"{key}_end")

        await asyncio.gather(task("a"), task("b"))

        assert results[:2] == ["a_start", "b_start"]

    @pytest.mark.asyncio
    async def test_lock_timeout_raises_error(self):
        """Test that lock timeout raises LockTimeoutError."""
        locks = KeyedLocks()

        async def hold_lock():
            async with locks.hold("k", timeout=5.0):
                await asyncio.sleep(0.5)

        hold_task = asyncio.create_task(hold_lock())
        await asyncio.sleep(0.05)

        with pytest.raises(LockTimeoutError):
            async with locks.hold("k", timeout=0.1):
                pass

        await hold_task
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_exception(self):
        """Test that the lock is released when the body raises."""
        locks = KeyedLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")

        assert not locks.is_locked("k")
        assert len(locks) == 0
