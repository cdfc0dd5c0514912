import asyncio

import pytest


def test_next_range_and_monotonic_advance():
    from launch_sniper.models import BlockRange
    from launch_sniper.pipeline.cursor import BlockCursor

    cur = BlockCursor(100)
    assert cur.next_range(100) is None
    assert cur.next_range(99) is None
    assert cur.next_range(105) == BlockRange(101, 105)
    assert cur.next_range(500, max_span=10) == BlockRange(101, 110)

    cur.advance(101)
    assert cur.last_processed == 101
    for bad in (101, 100, 103):
        with pytest.raises(ValueError):
            cur.advance(bad)
    assert cur.last_processed == 101


def test_scheduler_sleep_interrupted_by_stop():
    from launch_sniper.pipeline.cursor import Scheduler

    async def go():
        sched = Scheduler(poll_interval_sec=30, error_backoff_sec=30)
        asyncio.get_running_loop().call_later(0.01, sched.stop)
        return await sched.idle(), sched.stopped

    woken, stopped = asyncio.run(go())
    assert woken is True
    assert stopped is True


def test_scheduler_sleep_times_out():
    from launch_sniper.pipeline.cursor import Scheduler

    assert asyncio.run(Scheduler().sleep(0.001)) is False
