"""Post-work feedback loop: rating -> session log + break suggestion.

States: idle -> awaitingRating -> loggingAndSuggesting -> idle. The engine
holds the clock while this loop is anywhere but idle.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .config import FALLBACK_BREAK_SUGGESTION
from .errors import InvalidRating, Notice, NoticeKind
from .services import FocusSessionLog, SessionLogStore, Suggester, time_of_day

logger = logging.getLogger(__name__)


class FeedbackState(str, Enum):
    IDLE = "idle"
    AWAITING_RATING = "awaitingRating"
    LOGGING_AND_SUGGESTING = "loggingAndSuggesting"


@dataclass(frozen=True)
class CompletedSessionInfo:
    duration_minutes: int
    task_id: Optional[str] = None
    task_title: Optional[str] = None


@dataclass(frozen=True)
class FeedbackResult:
    rating: int
    suggestion: str
    logged: bool


def validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRating(rating)
    return rating


class FeedbackLoop:
    def __init__(
        self,
        suggester: Suggester,
        log_store: Optional[SessionLogStore] = None,
        user_id: Optional[str] = None,
        *,
        now: Callable[[], datetime] = datetime.now,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ):
        self.suggester = suggester
        self.log_store = log_store
        self.user_id = user_id
        self._now = now
        self._on_notice = on_notice
        self._state = FeedbackState.IDLE
        self._info: Optional[CompletedSessionInfo] = None
        self._suggesting = False

    @property
    def state(self) -> FeedbackState:
        return self._state

    @property
    def prompt_pending(self) -> bool:
        return self._state is FeedbackState.AWAITING_RATING

    @property
    def active(self) -> bool:
        return self._state is not FeedbackState.IDLE

    @property
    def is_suggesting(self) -> bool:
        return self._suggesting

    def _notify(self, kind: NoticeKind, message: str) -> None:
        if self._on_notice is not None:
            self._on_notice(Notice(kind, message))

    def begin(self, info: CompletedSessionInfo) -> None:
        """Open the rating prompt for a just-completed work interval."""
        if self._state is not FeedbackState.IDLE:
            raise RuntimeError(f"Feedback loop already {self._state.value}")
        self._info = info
        self._state = FeedbackState.AWAITING_RATING

    async def submit(self, rating: int) -> FeedbackResult:
        """Accept the one rating for the open prompt and run logging + suggestion.

        Neither a log failure nor a suggestion failure stops the loop.
        """
        rating = validate_rating(rating)
        if self._state is not FeedbackState.AWAITING_RATING or self._info is None:
            raise RuntimeError("No focus rating prompt is pending")

        info = self._info
        self._state = FeedbackState.LOGGING_AND_SUGGESTING
        try:
            logged, suggestion = await asyncio.gather(
                self._log(info, rating),
                self.suggest(info.task_title, info.duration_minutes),
            )
        finally:
            self._state = FeedbackState.IDLE
            self._info = None
        return FeedbackResult(rating, suggestion, logged)

    async def _log(self, info: CompletedSessionInfo, rating: int) -> bool:
        if self.log_store is None or self.user_id is None:
            return False
        timestamp = self._now()
        record = FocusSessionLog(
            user_id=self.user_id,
            timestamp=timestamp,
            focus_level=rating,
            duration_minutes=info.duration_minutes,
            task_id=info.task_id,
            task_title=info.task_title,
            time_of_day=time_of_day(timestamp),
        )
        try:
            await self.log_store.append(record)
        except Exception as e:
            logger.warning(f"Focus session log failed: {e}")
            self._notify(NoticeKind.LOGGING_FAILED, "Could not save focus rating.")
            return False
        self._notify(NoticeKind.FOCUS_RATED, "Your focus level has been logged.")
        return True

    async def suggest(self, task_title: Optional[str], duration_minutes: int) -> str:
        """Break activity suggestion, or the generic fallback on any failure."""
        self._suggesting = True
        try:
            suggestion = await self.suggester.suggest(task_title, duration_minutes)
            if not isinstance(suggestion, str) or not suggestion.strip():
                raise ValueError(f"empty suggestion {suggestion!r}")
            return suggestion.strip()
        except Exception as e:
            logger.warning(f"Break suggestion failed: {e}")
            self._notify(NoticeKind.SUGGESTION_UNAVAILABLE, "Could not get a smart break suggestion.")
            return FALLBACK_BREAK_SUGGESTION
        finally:
            self._suggesting = False
