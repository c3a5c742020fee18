"""Error types and user-displayable notices.

Nothing raised by a collaborator ever crosses the command API. Service
failures become a Notice in the engine's buffer; only the synchronous
validation errors below are raised to the caller.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Deque


class EngineError(Exception):
    """Base class for everything the engine raises."""


class TaskNotFound(EngineError, LookupError):
    def __init__(self, task_id: str):
        super().__init__(f"Unknown task id: {task_id}")
        self.task_id = task_id


class InvalidDuration(EngineError, ValueError):
    def __init__(self, minutes):
        super().__init__(f"Work duration must be a positive number of minutes, got {minutes!r}")
        self.minutes = minutes


class InvalidRating(EngineError, ValueError):
    def __init__(self, rating):
        super().__init__(f"Focus rating must be an integer from 1 to 5, got {rating!r}")
        self.rating = rating


class ConfigError(EngineError):
    """Raised when environment configuration cannot be parsed."""


class ServiceError(EngineError):
    """An external service failed or answered with a payload we can't use."""


class NoticeKind(str, Enum):
    # Errors (never fatal)
    ESTIMATION_UNAVAILABLE = "EstimationUnavailable"
    LOGGING_FAILED = "LoggingFailed"
    SUGGESTION_UNAVAILABLE = "SuggestionUnavailable"
    SYNC_FAILED = "SyncFailed"
    # Informational
    SESSION_COMPLETE = "SessionComplete"
    SESSION_SKIPPED = "SessionSkipped"
    FOCUS_RATED = "FocusRated"
    DURATION_ESTIMATED = "DurationEstimated"
    DURATION_UPDATED = "DurationUpdated"


ERROR_KINDS = frozenset({
    NoticeKind.ESTIMATION_UNAVAILABLE,
    NoticeKind.LOGGING_FAILED,
    NoticeKind.SUGGESTION_UNAVAILABLE,
    NoticeKind.SYNC_FAILED,
})


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.kind in ERROR_KINDS

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "is_error": self.is_error,
            "timestamp": self.created_at.strftime("%H:%M:%S"),
        }


class NoticeBuffer:
    """Circular buffer of recent notices (max 100)."""

    def __init__(self, maxlen: int = 100):
        self._items: Deque[Notice] = deque(maxlen=maxlen)
        self._last_error: Notice | None = None

    def push(self, notice: Notice) -> Notice:
        self._items.append(notice)
        if notice.is_error:
            self._last_error = notice
        return notice

    @property
    def last_error(self) -> Notice | None:
        return self._last_error

    def recent(self, limit: int = 20) -> list[Notice]:
        return list(self._items)[-limit:]
