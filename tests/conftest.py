"""Fake collaborators shared by the engine tests."""

import asyncio
import random
from datetime import date, datetime

import pytest

from focus_engine.config import EngineSettings
from focus_engine.engine import SessionEngine
from focus_engine.errors import ServiceError
from focus_engine.services import StaticTaskProvider, Task


class FakeEstimator:
    """Answers immediately, or from a future the test resolves by hand."""

    def __init__(self, minutes=30, fail=False, manual=False):
        self.minutes = minutes
        self.fail = fail
        self.manual = manual
        self.calls: list[str] = []
        self.pending: list[asyncio.Future] = []

    async def estimate(self, task_title):
        self.calls.append(task_title)
        if self.manual:
            fut = asyncio.get_running_loop().create_future()
            self.pending.append(fut)
            return await fut
        if self.fail:
            raise ServiceError("estimator down")
        return self.minutes


class FakeSuggester:
    def __init__(self, text="Take a short walk.", fail=False):
        self.text = text
        self.fail = fail
        self.calls: list[tuple] = []

    async def suggest(self, task_title, duration_minutes):
        self.calls.append((task_title, duration_minutes))
        if self.fail:
            raise ServiceError("suggester down")
        return self.text


class FakeLogStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.records = []

    async def append(self, record):
        if self.fail:
            raise ServiceError("log store down")
        self.records.append(record)


class FakeSettingsStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.merges: list[dict] = []
        self.doc: dict = {}

    async def merge_partial(self, user_id, patch):
        if self.fail:
            raise ServiceError("settings store down")
        self.merges.append(dict(patch))
        self.doc.update(patch)


class DayClock:
    """Injectable `today` source the test can move forward."""

    def __init__(self, day=date(2026, 2, 11)):
        self.day = day

    def __call__(self):
        return self.day


TASKS = StaticTaskProvider([
    Task("write", "Write report"),
    Task("read", "Read paper"),
    Task("known", "Fix flaky test", estimated_minutes=40),
])


def make_engine(user_id="alice", **overrides) -> SessionEngine:
    """Engine with fast fakes for every collaborator.

    Keyword overrides are either EngineSettings fields or SessionEngine
    constructor arguments.
    """
    setting_names = set(EngineSettings.__dataclass_fields__)
    settings = EngineSettings(**{k: overrides.pop(k) for k in list(overrides) if k in setting_names})
    kwargs = dict(
        estimator=FakeEstimator(),
        suggester=FakeSuggester(),
        log_store=FakeLogStore(),
        settings_store=FakeSettingsStore(),
        tasks=TASKS,
        user_id=user_id,
        today=DayClock(),
        now=lambda: datetime(2026, 2, 11, 9, 30),
        rng=random.Random(7),
    )
    kwargs.update(overrides)
    return SessionEngine(settings, **kwargs)


async def finish_interval(engine: SessionEngine, rating: int = 4) -> None:
    """Run the current interval to zero and answer the prompt if one opens."""
    if not engine.is_running:
        assert engine.start()
    for _ in range(engine.time_remaining):
        await engine.tick()
    if engine.prompt_pending:
        await engine.submit_rating(rating)


@pytest.fixture
def engine():
    return make_engine()


@pytest.fixture
def anon_engine():
    return make_engine(user_id=None, log_store=None, settings_store=None)
