"""Collaborator contracts and the adapters that ship with the engine.

The engine only ever talks to these protocols. The HTTP adapters wrap a
blocking ``requests`` call in a worker thread so the event loop keeps
ticking while a service is slow.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Protocol

import requests
from pydantic import BaseModel, Field

from .errors import ServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    estimated_minutes: int = 0


def time_of_day(moment: datetime) -> str:
    hour = moment.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


class FocusSessionLog(BaseModel):
    """One rated focus session, as written to the session log store."""

    user_id: str
    timestamp: datetime
    focus_level: int = Field(ge=1, le=5)
    duration_minutes: int
    task_id: Optional[str] = None
    task_title: Optional[str] = None
    time_of_day: str = "unknown"


# ---- Contracts ----

class Estimator(Protocol):
    async def estimate(self, task_title: str) -> int: ...


class Suggester(Protocol):
    async def suggest(self, task_title: Optional[str], duration_minutes: int) -> str: ...


class SessionLogStore(Protocol):
    async def append(self, record: FocusSessionLog) -> None: ...


class SettingsStore(Protocol):
    async def merge_partial(self, user_id: str, patch: Mapping[str, Any]) -> None: ...


class TaskProvider(Protocol):
    def get(self, task_id: str) -> Optional[Task]: ...


# ---- In-memory task lookup ----

class StaticTaskProvider:
    """Read-only lookup over a fixed list of tasks."""

    def __init__(self, tasks: Iterable[Task] = ()):
        self._tasks: dict[str, Task] = {t.id: t for t in tasks}

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)


# ---- HTTP adapters ----

def _post_json(url: str, payload: dict, timeout: float) -> dict:
    try:
        response = requests.post(url, json=payload, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as e:
        raise ServiceError(f"POST {url} failed: {e}") from e
    except ValueError as e:
        raise ServiceError(f"POST {url} returned invalid JSON") from e
    if not isinstance(data, dict):
        raise ServiceError(f"POST {url} returned {type(data).__name__}, expected object")
    return data


class HttpEstimator:
    """POST {"taskTitle"} -> {"estimatedDurationMinutes": int}."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    async def estimate(self, task_title: str) -> int:
        data = await asyncio.to_thread(_post_json, self.url, {"taskTitle": task_title}, self.timeout)
        minutes = data.get("estimatedDurationMinutes")
        if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
            raise ServiceError(f"Malformed estimate payload: {data!r}")
        return int(minutes)


class HttpSuggester:
    """POST {"taskTitle", "pomodoroDurationMinutes"} -> {"suggestion": str}."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    async def suggest(self, task_title: Optional[str], duration_minutes: int) -> str:
        payload = {"taskTitle": task_title, "pomodoroDurationMinutes": duration_minutes}
        data = await asyncio.to_thread(_post_json, self.url, payload, self.timeout)
        suggestion = data.get("suggestion")
        if not isinstance(suggestion, str) or not suggestion.strip():
            raise ServiceError(f"Malformed suggestion payload: {data!r}")
        return suggestion.strip()


class UnavailableService:
    """Stand-in used when no endpoint is configured; every call fails."""

    def __init__(self, name: str):
        self.name = name

    async def estimate(self, task_title: str) -> int:
        raise ServiceError(f"No {self.name} configured")

    async def suggest(self, task_title: Optional[str], duration_minutes: int) -> str:
        raise ServiceError(f"No {self.name} configured")
