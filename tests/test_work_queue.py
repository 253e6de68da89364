import asyncio

import pytest

from docs_hound.work_queue import WorkQueue


def test_concurrency_limit_is_respected():
    active = 0
    peak = 0
    done = []

    async def job(i):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        done.append(i)

    async def run():
        q = WorkQueue(concurrency=3)
        for i in range(10):
            q.add(lambda i=i: job(i))
        assert q.pending == 3
        assert q.size == 7
        await q.on_idle()
        assert q.size == 0 and q.pending == 0

    asyncio.run(run())
    assert peak == 3
    assert sorted(done) == list(range(10))


def test_dispatches_are_spaced_by_interval():
    starts = []

    async def job():
        starts.append(asyncio.get_running_loop().time())

    async def run():
        q = WorkQueue(concurrency=5, interval_s=0.05)
        for _ in range(4):
            q.add(job)
        # Only the first may start right away, concurrency notwithstanding.
        assert q.pending == 1
        await q.on_idle()

    asyncio.run(run())
    assert len(starts) == 4
    gaps = [b - a for a, b in zip(starts, starts[1:])]
    assert all(gap >= 0.04 for gap in gaps)


def test_tasks_added_while_running_are_awaited():
    seen = []

    async def run():
        q = WorkQueue(concurrency=2)

        async def child(n):
            seen.append(n)
            if n < 3:
                q.add(lambda: child(n + 1))

        q.add(lambda: child(0))
        await q.on_idle()

    asyncio.run(run())
    assert seen == [0, 1, 2, 3]


def test_on_idle_returns_immediately_when_empty():
    async def run():
        q = WorkQueue(concurrency=1)
        await asyncio.wait_for(q.on_idle(), timeout=1)

    asyncio.run(run())


def test_task_failure_propagates_from_on_idle():
    finished = []

    async def boom():
        raise ValueError("boom")

    async def fine():
        finished.append(True)

    async def run():
        q = WorkQueue(concurrency=1)
        q.add(boom)
        q.add(fine)
        await q.on_idle()

    with pytest.raises(ValueError, match="boom"):
        asyncio.run(run())
    assert finished == [True]


@pytest.mark.parametrize("kwargs", [{"concurrency": 0}, {"concurrency": 1, "interval_s": -1}])
def test_invalid_settings_rejected(kwargs):
    with pytest.raises(ValueError):
        WorkQueue(**kwargs)
