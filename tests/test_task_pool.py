"""后台任务池测试"""
import asyncio

import pytest

from fluxdigest.infrastructure.task_pool import TaskPool


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    pool = TaskPool(max_concurrency=2, name="test")
    active = 0
    peak = 0

    async def job():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1

    for i in range(6):
        pool.submit(job, label=str(i))
    assert pool.pending == 6

    await pool.join()

    assert peak == 2
    assert pool.pending == 0


@pytest.mark.asyncio
async def test_failures_are_isolated():
    pool = TaskPool(max_concurrency=1)
    done = []

    async def failing():
        raise RuntimeError("boom")

    async def ok():
        done.append(True)

    pool.submit(failing, label="failing")
    pool.submit(ok, label="ok")
    await pool.join()

    assert done == [True]


@pytest.mark.asyncio
async def test_cancel_all():
    pool = TaskPool(max_concurrency=1)

    async def forever():
        await asyncio.sleep(3600)

    pool.submit(forever)
    pool.submit(forever)
    await asyncio.sleep(0)

    await pool.cancel_all()
    assert pool.pending == 0


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        TaskPool(max_concurrency=0)
