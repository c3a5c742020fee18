"""Drives SessionEngine.tick once per second from an APScheduler job."""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .engine import SessionEngine

logger = logging.getLogger(__name__)

TICK_JOB_ID = "focus_engine_tick"


class EngineRunner:
    def __init__(self, engine: SessionEngine, scheduler: Optional[AsyncIOScheduler] = None):
        self.engine = engine
        self.scheduler = scheduler or AsyncIOScheduler()
        self._owns_scheduler = scheduler is None

    def start(self) -> None:
        """Register the tick job; starts the scheduler if we created it.

        Must be called with an event loop running.
        """
        self.scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=1),
            id=TICK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            name="Session engine tick",
        )
        if self._owns_scheduler and not self.scheduler.running:
            self.scheduler.start()
        logger.info("Tick job registered")

    def stop(self) -> None:
        """Remove the tick job now. Shutting down an owned scheduler is deferred
        to the event loop, so ``scheduler.running`` flips on the next iteration.
        """
        if self.scheduler.get_job(TICK_JOB_ID) is not None:
            self.scheduler.remove_job(TICK_JOB_ID)
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Tick job removed")

    async def _tick(self) -> None:
        try:
            await self.engine.tick()
        except Exception:
            logger.exception("Engine tick failed")
