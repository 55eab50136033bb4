"""Tests for per-asset locking and its re-entrancy."""

import asyncio

from assetmarket.core.locks import AssetLockRegistry


async def test_same_asset_operations_are_serialized():
    locks = AssetLockRegistry()
    order = []

    async def worker(name: str):
        async with locks.hold(1):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (
        ["a-in", "a-out", "b-in", "b-out"],
        ["b-in", "b-out", "a-in", "a-out"],
    )


async def test_different_assets_do_not_block_each_other():
    locks = AssetLockRegistry()
    entered = asyncio.Event()

    async def first():
        async with locks.hold(1):
            await asyncio.wait_for(entered.wait(), timeout=1)

    async def second():
        async with locks.hold(2):
            entered.set()

    await asyncio.gather(first(), second())


async def test_hold_is_reentrant_within_task():
    locks = AssetLockRegistry()

    async with locks.hold(5):
        assert locks.is_held(5)
        async with locks.hold(5):
            assert locks.is_held(5)
        assert locks.is_held(5)

    assert not locks.is_held(5)


async def test_child_task_is_not_a_holder():
    locks = AssetLockRegistry()

    async def held_in_child() -> bool:
        return locks.is_held(9)

    async with locks.hold(9):
        assert locks.is_held(9)
        assert await asyncio.create_task(held_in_child()) is False


async def test_child_task_waits_for_other_holders_after_parent_releases():
    locks = AssetLockRegistry()
    order = []
    go = asyncio.Event()
    other_entered = asyncio.Event()

    async def child():
        await go.wait()
        async with locks.hold(1):
            order.append("child-in")

    async def other():
        async with locks.hold(1):
            order.append("other-in")
            other_entered.set()
            await asyncio.sleep(0.02)
            order.append("other-out")

    async with locks.hold(1):
        child_task = asyncio.create_task(child())

    other_task = asyncio.create_task(other())
    await asyncio.wait_for(other_entered.wait(), timeout=1)
    go.set()
    await asyncio.gather(child_task, other_task)

    assert order == ["other-in", "other-out", "child-in"]
