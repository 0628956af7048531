import asyncio

import pytest

from honeyguard.scheduler.scheduled_task import ScheduledTask


@pytest.mark.asyncio
async def test_callback_runs_after_delay(clock):
    calls = []

    async def callback():
        calls.append(clock.now())

    task = ScheduledTask(5, callback, clock=clock)
    await clock.advance(4)
    assert calls == []
    assert not task.started

    await clock.advance(1)
    assert len(calls) == 1
    assert task.started
    assert task.done()


@pytest.mark.asyncio
async def test_cancel_before_delay_prevents_callback(clock):
    calls = []

    async def callback():
        calls.append(True)

    task = ScheduledTask(5, callback, clock=clock)
    assert task.cancel() is True
    assert task.cancelled

    await clock.advance(10)
    await task.wait()
    assert calls == []


@pytest.mark.asyncio
async def test_cancel_is_idempotent(clock):
    task = ScheduledTask(5, lambda: asyncio.sleep(0), clock=clock)
    assert task.cancel() is True
    assert task.cancel() is False
    assert task.cancel() is False


@pytest.mark.asyncio
async def test_cancel_after_start_does_not_interrupt_callback(clock):
    gate = asyncio.Event()
    finished = []

    async def callback():
        await gate.wait()
        finished.append(True)

    task = ScheduledTask(1, callback, clock=clock)
    await clock.advance(1)
    assert task.started

    assert task.cancel() is False
    gate.set()
    await task.wait()
    assert finished == [True]


@pytest.mark.asyncio
async def test_callback_exception_is_logged_not_raised(clock):
    async def callback():
        raise RuntimeError("boom")

    task = ScheduledTask(0, callback, clock=clock)
    await task.wait()
    assert task.done()
