"""HTTP surface for the session engine.

Commands map 1:1 onto SessionEngine commands; every response carries the
engine snapshot so a client never has to poll twice.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .engine import SessionEngine
from .errors import InvalidDuration, InvalidRating, TaskNotFound
from .logs import recent_logs
from .runner import EngineRunner

logger = logging.getLogger(__name__)


# Pydantic Models
class TaskSelectRequest(BaseModel):
    task_id: Optional[str] = None


class DurationRequest(BaseModel):
    minutes: int


class AdaptiveRequest(BaseModel):
    enabled: bool


class RatingRequest(BaseModel):
    rating: int


class CommandResponse(BaseModel):
    applied: bool
    state: dict


class RatingResponse(BaseModel):
    rating: int
    suggestion: str
    logged: bool
    state: dict


class RewardsResponse(BaseModel):
    gold_coins: int
    silver_coins: int
    completed_tasks_streak: int
    last_completion_date: Optional[str]
    total_tasks_completed: int


class NoticesResponse(BaseModel):
    notices: list[dict]
    count: int


class LogsResponse(BaseModel):
    logs: list[dict]
    count: int


def create_app(engine: SessionEngine, runner: Optional[EngineRunner] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if runner is not None:
            runner.start()
            logger.info("Engine runner started")
        yield
        if runner is not None:
            runner.stop()
        await engine.settle()

    app = FastAPI(
        title="Focus Engine",
        description="Focus/break session engine",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine

    def _command(applied: bool) -> CommandResponse:
        return CommandResponse(applied=applied, state=engine.snapshot())

    @app.get("/api/timer")
    async def get_timer():
        return engine.snapshot()

    @app.post("/api/timer/start", response_model=CommandResponse)
    async def start_timer():
        return _command(engine.start())

    @app.post("/api/timer/pause", response_model=CommandResponse)
    async def pause_timer():
        return _command(engine.pause())

    @app.post("/api/timer/reset", response_model=CommandResponse)
    async def reset_timer():
        return _command(engine.reset())

    @app.post("/api/timer/skip", response_model=CommandResponse)
    async def skip_timer():
        return _command(engine.skip())

    @app.post("/api/timer/task", response_model=CommandResponse)
    async def select_task(request: TaskSelectRequest):
        try:
            applied = engine.select_task(request.task_id)
        except TaskNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        return _command(applied)

    @app.post("/api/timer/duration", response_model=CommandResponse)
    async def set_duration(request: DurationRequest):
        try:
            applied = engine.set_fixed_work_duration(request.minutes)
        except InvalidDuration as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _command(applied)

    @app.post("/api/timer/adaptive", response_model=CommandResponse)
    async def set_adaptive(request: AdaptiveRequest):
        return _command(engine.set_adaptive_enabled(request.enabled))

    @app.post("/api/timer/rating", response_model=RatingResponse)
    async def submit_rating(request: RatingRequest):
        try:
            result = await engine.submit_rating(request.rating)
        except InvalidRating as e:
            raise HTTPException(status_code=400, detail=str(e))
        if result is None:
            raise HTTPException(status_code=409, detail="No focus rating prompt is pending")
        return RatingResponse(
            rating=result.rating,
            suggestion=result.suggestion,
            logged=result.logged,
            state=engine.snapshot(),
        )

    @app.get("/api/rewards", response_model=RewardsResponse)
    async def get_rewards():
        record = engine.reward_record
        return RewardsResponse(
            gold_coins=record.gold_coins,
            silver_coins=record.silver_coins,
            completed_tasks_streak=record.completed_tasks_streak,
            last_completion_date=record.last_completion_date.isoformat() if record.last_completion_date else None,
            total_tasks_completed=record.total_tasks_completed,
        )

    @app.get("/api/notices", response_model=NoticesResponse)
    async def get_notices(limit: int = 20):
        notices = [n.to_dict() for n in engine.notices.recent(limit)]
        return NoticesResponse(notices=notices, count=len(notices))

    @app.get("/api/logs/recent", response_model=LogsResponse)
    async def get_recent_logs(limit: int = 50):
        logs = recent_logs(limit)
        return LogsResponse(logs=logs, count=len(logs))

    return app
