"""EngineRunner job registration on a real AsyncIOScheduler."""

import asyncio

import pytest

from conftest import make_engine
from focus_engine.runner import TICK_JOB_ID, EngineRunner


class ExplodingEngine:
    async def tick(self):
        raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_start_registers_and_stop_removes():
    runner = EngineRunner(make_engine())
    runner.start()
    try:
        job = runner.scheduler.get_job(TICK_JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert runner.scheduler.running
    finally:
        runner.stop()
    assert runner.scheduler.get_job(TICK_JOB_ID) is None

    await asyncio.sleep(0)
    assert runner.scheduler.running is False


@pytest.mark.asyncio
async def test_tick_drives_engine():
    engine = make_engine()
    engine.start()
    runner = EngineRunner(engine)
    await runner._tick()
    assert engine.time_remaining == 25 * 60 - 1


@pytest.mark.asyncio
async def test_tick_errors_are_logged_not_raised(caplog):
    runner = EngineRunner(ExplodingEngine())
    await runner._tick()
    assert "Engine tick failed" in caplog.text
