from __future__ import annotations

import asyncio

import pytest

from devicepulse.scheduling import PeriodicTask


@pytest.mark.asyncio
async def test_periodic_task_runs_until_cancelled() -> None:
    calls = {"count": 0}

    async def callback() -> None:
        calls["count"] += 1

    timer = PeriodicTask("test", 0.01, callback)
    assert timer.start() is True
    await asyncio.sleep(0.06)
    assert timer.cancel() is True
    await timer.wait_closed()
    observed = calls["count"]
    await asyncio.sleep(0.03)

    assert observed >= 2
    assert calls["count"] == observed
    assert timer.running is False


@pytest.mark.asyncio
async def test_second_start_is_ignored() -> None:
    async def callback() -> None:
        return None

    timer = PeriodicTask("test", 10.0, callback)

    assert timer.start() is True
    assert timer.start() is False
    timer.cancel()
    await timer.wait_closed()


@pytest.mark.asyncio
async def test_cancel_is_idempotent() -> None:
    async def callback() -> None:
        return None

    timer = PeriodicTask("test", 10.0, callback)

    assert timer.cancel() is False
    timer.start()
    assert timer.cancel() is True
    assert timer.cancel() is False
    await timer.wait_closed()


@pytest.mark.asyncio
async def test_cancel_from_inside_callback_stops_further_ticks() -> None:
    calls = {"count": 0}
    timer: PeriodicTask

    async def callback() -> None:
        calls["count"] += 1
        timer.cancel()

    timer = PeriodicTask("self-cancel", 0.01, callback, run_immediately=True)
    timer.start()
    await asyncio.sleep(0.05)

    assert calls["count"] == 1
    assert timer.running is False


@pytest.mark.asyncio
async def test_callback_failure_keeps_timer_alive() -> None:
    calls = {"count": 0}

    async def callback() -> None:
        calls["count"] += 1
        raise RuntimeError("tick failed")

    timer = PeriodicTask("flaky", 0.01, callback, run_immediately=True)
    timer.start()
    await asyncio.sleep(0.05)
    timer.cancel()
    await timer.wait_closed()

    assert calls["count"] >= 2


def test_non_positive_interval_is_rejected() -> None:
    async def callback() -> None:
        return None

    with pytest.raises(ValueError):
        PeriodicTask("bad", 0, callback)


def test_start_without_event_loop_leaves_task_stopped() -> None:
    async def callback() -> None:
        return None

    timer = PeriodicTask("test", 0.01, callback)

    with pytest.raises(RuntimeError):
        timer.start()

    assert timer.running is False
