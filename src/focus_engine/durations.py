"""Duration resolution: how long the next interval should be."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import EngineSettings
from .errors import Notice, NoticeKind
from .modes import Mode
from .services import Estimator, Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    minutes: int
    source: str  # "fixed", "task", "estimate" or "fallback"
    warning: Optional[Notice] = None

    @property
    def seconds(self) -> int:
        return self.minutes * 60


class DurationResolver:
    def __init__(self, settings: EngineSettings, estimator: Estimator):
        self.settings = settings
        self.estimator = estimator

    def clamp(self, minutes: int) -> int:
        return max(self.settings.adaptive_min_minutes, min(self.settings.adaptive_max_minutes, minutes))

    def resolve_fixed(self, mode: Mode) -> int:
        if mode is Mode.SHORT_BREAK:
            return self.settings.short_break_minutes
        if mode is Mode.LONG_BREAK:
            return self.settings.long_break_minutes
        return self.settings.work_minutes

    def needs_estimate(self, task: Task) -> bool:
        return task.estimated_minutes <= 0

    async def resolve_adaptive(self, task: Task) -> Resolution:
        """Work duration for ``task``.

        A known estimate is used as-is. Otherwise the estimator is asked once;
        any failure falls back to the fixed work duration with a warning.
        """
        if not self.needs_estimate(task):
            return Resolution(task.estimated_minutes, "task")

        try:
            raw = await self.estimator.estimate(task.title)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise TypeError(f"estimate must be a number, got {raw!r}")
            minutes = self.clamp(int(raw))
        except Exception as e:
            logger.warning(f"Estimation failed for {task.title!r}: {e}")
            fallback = self.settings.work_minutes
            warning = Notice(
                NoticeKind.ESTIMATION_UNAVAILABLE,
                f"Could not estimate duration for \"{task.title}\". Using {fallback} minutes.",
            )
            return Resolution(fallback, "fallback", warning)

        logger.info(f"Estimated {minutes} min for {task.title!r} (raw {raw})")
        return Resolution(minutes, "estimate")
